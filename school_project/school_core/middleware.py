from django.utils.deprecation import MiddlewareMixin

from .context import ServiceContext


class CurrentSchoolMiddleware(MiddlewareMixin):
    # Run on every request and attach a .service_context built from the
    # logged-in user; services trust this value completely
    def process_request(self, request):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            request.service_context = ServiceContext.for_user(user)
        else:
            # Unauthenticated users
            request.service_context = None
