from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    AssetMaintenanceViewSet,
    ConsumableAdjustmentViewSet,
    FixedAssetViewSet,
    WarehouseStockViewSet,
)
from .distribution_views import (
    AssetDistributionViewSet,
    IncomingDistributionViewSet,
)

router = DefaultRouter()
router.register(r'fixed-assets', FixedAssetViewSet, basename='fixed-assets')
router.register(r'warehouse-stocks', WarehouseStockViewSet, basename='warehouse-stocks')
router.register(r'stock-adjustments', ConsumableAdjustmentViewSet, basename='stock-adjustments')
router.register(r'maintenances', AssetMaintenanceViewSet, basename='maintenances')
# Asset distribution ("dropping") endpoints
router.register(r'distributions', AssetDistributionViewSet, basename='distributions')
router.register(r'incoming-distributions', IncomingDistributionViewSet, basename='incoming-distributions')

urlpatterns = [
    path('api/', include(router.urls)),
]
