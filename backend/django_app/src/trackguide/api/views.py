import json
import logging
from datetime import datetime, time
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.models import User
from django.views.decorators.http import require_http_methods
from trackguide.api import reports, store
from trackguide.api.errors import error_response, handle_errors

logger = logging.getLogger(__name__)

SERVICE_NAME = 'trackguide-backend'


def _json_body(request):
    try:
        body = json.loads(request.body or b"{}")
    except ValueError:
        body = {}
    return body if isinstance(body, dict) else {}


def _unauthorized():
    return error_response("Unauthorized", 401)


def _user_json(user):
    return {"id": user.id, "username": user.first_name or user.username, "email": user.email}


def _task_json(t):
    return {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "category": t.category,
        "isActive": t.is_active,
        "createdAt": t.created_at.isoformat() if t.created_at else None,
    }


def _entry_json(p):
    return {
        "id": p.id,
        "taskId": p.task_id,
        "task": {"id": p.task.id, "name": p.task.name, "category": p.task.category},
        "date": datetime.combine(p.day, time.min).isoformat(),
        "completed": p.completed,
        "notes": p.notes,
        "createdAt": p.created_at.isoformat() if p.created_at else None,
        "updatedAt": p.updated_at.isoformat() if p.updated_at else None,
    }


@require_http_methods(["GET"])
def healthz(request):
    return JsonResponse({"status": "OK", "service": SERVICE_NAME, "message": "Track Guide API is running"})

@csrf_exempt
@require_http_methods(["POST"])
def register(request):
    body = _json_body(request)
    email = (body.get('email') or '').strip().lower()
    password = body.get('password') or ''
    display_name = (body.get('username') or '').strip()
    if not email or not password or len(password) < 8:
        return error_response("Invalid input", 400)
    if User.objects.filter(username=email).exists():
        return error_response("Email already registered", 409)
    user = User.objects.create_user(username=email, email=email, password=password, first_name=display_name[:150])
    login(request, user)
    logger.info("Registered user %s", user.id)
    return JsonResponse({"success": True, "data": {"user": _user_json(user)}}, status=201)

@csrf_exempt
@require_http_methods(["POST"])
def login_view(request):
    body = _json_body(request)
    email = (body.get('email') or '').strip().lower()
    password = body.get('password') or ''
    user = authenticate(request, username=email, password=password)
    if user is None:
        return error_response("Invalid credentials", 401)
    login(request, user)
    return JsonResponse({"success": True, "data": {"user": _user_json(user)}})

@csrf_exempt
@require_http_methods(["POST"])
def logout_view(request):
    logout(request)
    return JsonResponse({"success": True})

@require_http_methods(["GET"])
def me(request):
    if request.user.is_authenticated:
        return JsonResponse({"success": True, "data": {"user": _user_json(request.user)}})
    return JsonResponse({"success": True, "data": {"user": None}})

@csrf_exempt
@require_http_methods(["GET", "POST"])
@handle_errors("Error processing tasks")
def tasks(request):
    if not request.user.is_authenticated:
        return _unauthorized()
    if request.method == 'GET':
        items = [_task_json(t) for t in store.list_active_tasks(request.user, newest_first=True)]
        return JsonResponse({"success": True, "count": len(items), "data": items})
    else:
        body = _json_body(request)
        t = store.create_task(
            request.user,
            name=body.get('name'),
            description=body.get('description') or '',
            category=body.get('category') or '',
        )
        return JsonResponse({"success": True, "message": "Task created successfully", "data": _task_json(t)}, status=201)

@csrf_exempt
@require_http_methods(["PUT", "DELETE"])
@handle_errors("Error updating task")
def task_detail(request, task_id: str):
    if not request.user.is_authenticated:
        return _unauthorized()
    if request.method == 'DELETE':
        store.deactivate_task(request.user, task_id)
        return JsonResponse({"success": True, "message": "Task deleted successfully"})
    else:
        body = _json_body(request)
        fields = {k: body[k] for k in ('name', 'description', 'category') if k in body}
        if 'isActive' in body:
            fields['is_active'] = body['isActive']
        t = store.update_task(request.user, task_id, **fields)
        return JsonResponse({"success": True, "message": "Task updated successfully", "data": _task_json(t)})

@csrf_exempt
@require_http_methods(["GET", "POST"])
@handle_errors("Error processing progress data")
def progress(request):
    if not request.user.is_authenticated:
        return _unauthorized()
    if request.method == 'GET':
        entries = store.query_range(
            request.user,
            start=request.GET.get('startDate'),
            end=request.GET.get('endDate'),
        )
        items = [_entry_json(p) for p in entries]
        return JsonResponse({"success": True, "count": len(items), "data": items})
    else:
        body = _json_body(request)
        notes = body.get('notes')
        p = store.upsert_entry(
            request.user,
            body.get('taskId'),
            body.get('date'),
            completed=body.get('completed', False),
            notes=None if notes is None else str(notes),
        )
        return JsonResponse({"success": True, "message": "Progress updated successfully", "data": _entry_json(p)})

@require_http_methods(["GET"])
@handle_errors("Error generating report")
def progress_report(request, year: int, month: int):
    if not request.user.is_authenticated:
        return _unauthorized()
    report = reports.monthly_report(request.user, year, month)
    return JsonResponse({"success": True, "data": report})
