from django.urls import path
from .views import (
    WaybillListView, WaybillStatsView, WaybillGenerateView,
    WaybillReserveView, WaybillUseView, WaybillCancelView, WaybillStockView,
)

urlpatterns = [
    path("waybills/",                        WaybillListView.as_view(),     name="waybill-list"),
    path("waybills/stats/",                  WaybillStatsView.as_view(),    name="waybill-stats"),
    path("waybills/generate/",               WaybillGenerateView.as_view(), name="waybill-generate"),
    path("waybills/reserve/",                WaybillReserveView.as_view(),  name="waybill-reserve"),
    path("waybills/use/",                    WaybillUseView.as_view(),      name="waybill-use"),
    path("waybills/stock/",                  WaybillStockView.as_view(),    name="waybill-stock"),
    path("waybills/<str:waybill>/cancel/",   WaybillCancelView.as_view(),   name="waybill-cancel"),
]
