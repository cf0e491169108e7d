"""Root URL configuration."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/accounts/', include(('accounts.urls', 'accounts'), namespace='accounts')),
    path('api/', include(('flights.urls', 'flights'), namespace='flights')),
]
