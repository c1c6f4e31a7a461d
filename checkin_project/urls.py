from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    path('', include('checkin.urls')),
]

# Serve ID uploads from MEDIA_ROOT when no object storage bucket is configured
if not settings.CHECKIN_STORAGE_BUCKET:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
