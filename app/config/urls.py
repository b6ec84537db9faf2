from django.contrib import admin
from django.urls import path, include
from django.shortcuts import redirect


urlpatterns = [
    path('home/', admin.site.urls),
    path('production/', include('apps.production.urls')),
    path("", lambda req: redirect("/home/")),
]
