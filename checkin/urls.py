from django.urls import path
from . import views

app_name = 'checkin'

urlpatterns = [
    # Error page (Call Front Desk)
    path('error/', views.error_page, name='error'),

    # Phone lookup
    path('', views.lookup, name='lookup'),
    path('checkin/back/', views.back, name='back'),

    # Guest ID image wizard
    path('checkin/', views.checkin_form, name='checkin_form'),
    path('checkin/guest/<str:guest_id>/<str:side>/', views.upload_options, name='upload_options'),
    path('checkin/guest/<str:guest_id>/<str:side>/upload/', views.gallery_upload, name='gallery_upload'),
    path('checkin/guest/<str:guest_id>/<str:side>/camera/', views.camera_capture, name='camera_capture'),
    path('checkin/guest/<str:guest_id>/<str:side>/preview/', views.preview, name='preview'),
    path('checkin/submit/', views.submit, name='submit'),

    # API endpoints
    path('api/guest/<str:guest_id>/<str:side>/capture/', views.capture_api, name='capture_api'),
]
