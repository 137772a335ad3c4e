from django.http import JsonResponse


def error_404_view(request, exception):
    # storefront clients only speak JSON
    return JsonResponse({"success": False, "message": "Not found", "path": request.path}, status=404)


def error_500_view(request):
    return JsonResponse({"success": False, "message": "Internal server error"}, status=500)
