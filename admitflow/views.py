from rest_framework.response import Response
from rest_framework.views import APIView


class ApiHomeView(APIView):
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return Response(
            {
                "message": "Welcome to the AdmitFlow API",
                "endpoints": {
                    "admin": "/admin/",
                    "token_obtain": "/api/token/",
                    "token_refresh": "/api/token/refresh/",
                    "schema": "/api/schema/",
                    "swagger": "/api/schema/swagger-ui/",
                    "redoc": "/api/schema/redoc/",
                    "health": "/api/admissions/health/",
                    "applications": "/api/admissions/applications/",
                    "workflow_definition": "/api/admissions/workflows/definition/",
                },
            }
        )
