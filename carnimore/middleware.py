from django.conf import settings
from django.http import HttpResponse


class ApiCorsMiddleware:
    """Attach the storefront CORS headers to every /api/ response.

    Browser preflights (OPTIONS) to an /api/ path are answered here so they
    never reach the JSON views.
    """

    api_prefix = "/api/"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.path.startswith(self.api_prefix):
            return self.get_response(request)

        if request.method == "OPTIONS":
            response = HttpResponse(status=200)
        else:
            response = self.get_response(request)

        for header, value in getattr(settings, "API_CORS_HEADERS", {}).items():
            response[header] = value
        return response
