from django.urls import include, path

urlpatterns = [
    path("api/", include("school_core.urls")),
]
