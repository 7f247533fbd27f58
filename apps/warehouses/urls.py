from django.urls import path
from .views import WarehouseListView, WarehouseUpdateView

urlpatterns = [
    path("warehouses/",             WarehouseListView.as_view(),   name="warehouse-list"),
    path("warehouses/<str:name>/",  WarehouseUpdateView.as_view(), name="warehouse-update"),
]
