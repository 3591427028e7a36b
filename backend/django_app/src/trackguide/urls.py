from django.contrib import admin
from django.urls import path
from trackguide.api import views as api

urlpatterns = [
    path('admin/', admin.site.urls),

    # Health (accept with and without trailing slash)
    path('healthz', api.healthz),
    path('healthz/', api.healthz),
    path('api/health', api.healthz),
    path('api/health/', api.healthz),

    # Auth endpoints
    path('api/auth/register', api.register),
    path('api/auth/register/', api.register),
    path('api/auth/signup', api.register),
    path('api/auth/signup/', api.register),
    path('api/auth/login', api.login_view),
    path('api/auth/login/', api.login_view),
    path('api/auth/logout', api.logout_view),
    path('api/auth/logout/', api.logout_view),
    path('api/auth/me', api.me),
    path('api/auth/me/', api.me),

    # Tasks collection and detail
    path('api/tasks', api.tasks),
    path('api/tasks/', api.tasks),
    path('api/tasks/<str:task_id>', api.task_detail),
    path('api/tasks/<str:task_id>/', api.task_detail),

    # Progress tracking and monthly report
    path('api/progress', api.progress),
    path('api/progress/', api.progress),
    path('api/progress/report/<int:year>/<int:month>', api.progress_report),
    path('api/progress/report/<int:year>/<int:month>/', api.progress_report),
]
