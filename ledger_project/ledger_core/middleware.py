from django.utils.deprecation import MiddlewareMixin

from .models import Customer

# Session key holding the logged-in shop's customer id.
# Login itself lives outside this app; it only has to set this key.
SESSION_CUSTOMER_KEY = "customer_id"


class CurrentCustomerMiddleware(MiddlewareMixin):
    # Run on every request and attach a .customer attribute
    # (None when the session carries no customer)
    def process_request(self, request):
        request.customer = None
        session = getattr(request, "session", None)
        if session is None:
            return
        customer_id = session.get(SESSION_CUSTOMER_KEY)
        if customer_id:
            # a stale id (customer gone) is treated as logged out
            request.customer = Customer.objects.filter(pk=customer_id).first()
