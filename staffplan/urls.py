from django.urls import path

from staffing.api import api

urlpatterns = [
    path("api/", api.urls),
]
