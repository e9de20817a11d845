"""Main URL mapping configuration file.

Include other URLConfs from external apps using method `include()`.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    # Apps:
    path('api/', include('server.apps.vault.urls', namespace='vault')),

    # Django admin:
    path('admin/', admin.site.urls),
]
