from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ProcurementViewSet, RequestViewSet, UsageReportViewSet

router = DefaultRouter()
router.register(r'requests', RequestViewSet, basename='requests')
router.register(r'procurements', ProcurementViewSet, basename='procurements')
router.register(r'usage-reports', UsageReportViewSet, basename='usage-reports')

urlpatterns = [
    path('api/', include(router.urls)),
]
