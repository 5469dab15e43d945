from django.urls import path
from . import views

app_name = 'files'

urlpatterns = [
    # Issues a token for content that already lives upstream
    path('generate', views.generate, name='generate'),

    # Stores a file upstream and returns its token
    path('upload', views.upload_file, name='upload'),

    # Returns a scrambled copy of an image
    path('scramble', views.scramble_image, name='scramble'),

    # Resolves a token, e.g. /3f2a.../U2FsdGVk...
    path('<str:digit>/<str:encrypted>', views.download_file, name='download'),
]
