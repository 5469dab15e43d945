from django.urls import path, include

urlpatterns = [
    # Include all URLs from the 'files' app under the root path
    path('', include('apps.files.urls')),
]
