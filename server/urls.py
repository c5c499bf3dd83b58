"""Root URL configuration.

The drive core exposes no HTTP views of its own; only the admin is
mounted so quotas and trash can be inspected.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
