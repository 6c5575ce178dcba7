from django.db import connections
from django.http import JsonResponse
from django.utils import timezone


def healthz(request):
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
    except Exception as e:
        return JsonResponse({'ok': False, 'error': {'code': 'db_unavailable', 'message': str(e)}}, status=503)
    return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'time': timezone.localtime().isoformat()})
