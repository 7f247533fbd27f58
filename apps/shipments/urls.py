from django.urls import path
from .views import (
    ShipmentCreateView, ShipmentValidateView, ShipmentListView, ShipmentDetailView, ShipmentByWaybillView,
    ShipmentUpdateView, ShipmentCancelView, ShipmentTrackView, ShipmentLabelView,
    ShipmentEwaybillView, ShipmentStatusView, OrderShipmentDetailsView,
    ServiceabilityView, PickupRequestView, CarrierOrderListView, CarrierOrderSearchView,
    CarrierOrderAnalyticsView, CarrierOrderByReferenceView, CarrierStatusView,
)

urlpatterns = [
    path("shipments/",                                 ShipmentListView.as_view(),          name="shipment-list"),
    path("shipments/create/",                          ShipmentCreateView.as_view(),        name="shipment-create"),
    path("shipments/validate/",                        ShipmentValidateView.as_view(),      name="shipment-validate"),
    path("shipments/<uuid:shipment_id>/",              ShipmentDetailView.as_view(),        name="shipment-detail"),
    path("shipments/<uuid:shipment_id>/status/",       ShipmentStatusView.as_view(),        name="shipment-status"),
    path("shipments/waybill/<str:waybill>/",           ShipmentByWaybillView.as_view(),     name="shipment-by-waybill"),
    path("shipments/waybill/<str:waybill>/edit/",      ShipmentUpdateView.as_view(),        name="shipment-edit"),
    path("shipments/waybill/<str:waybill>/cancel/",    ShipmentCancelView.as_view(),        name="shipment-cancel"),
    path("shipments/waybill/<str:waybill>/track/",     ShipmentTrackView.as_view(),         name="shipment-track"),
    path("shipments/waybill/<str:waybill>/label/",     ShipmentLabelView.as_view(),         name="shipment-label"),
    path("shipments/waybill/<str:waybill>/ewaybill/",  ShipmentEwaybillView.as_view(),      name="shipment-ewaybill"),
    path("orders/<uuid:order_id>/shipment-details/",   OrderShipmentDetailsView.as_view(),  name="order-shipment-details"),
    path("serviceability/",                            ServiceabilityView.as_view(),        name="serviceability"),
    path("pickups/",                                   PickupRequestView.as_view(),         name="pickup-request"),
    path("carrier/status/",                            CarrierStatusView.as_view(),         name="carrier-status"),
    path("carrier/orders/",                            CarrierOrderListView.as_view(),      name="carrier-orders"),
    path("carrier/orders/search/",                     CarrierOrderSearchView.as_view(),    name="carrier-order-search"),
    path("carrier/orders/analytics/",                  CarrierOrderAnalyticsView.as_view(), name="carrier-order-analytics"),
    path("carrier/orders/reference/<str:reference>/",  CarrierOrderByReferenceView.as_view(), name="carrier-order-by-reference"),
]
