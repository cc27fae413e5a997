from django.contrib import admin

from ..models import MobileLinkRequest
from .actions import approve_mobile_requests, reject_mobile_requests


@admin.register(MobileLinkRequest)
class MobileLinkRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "shop_name", "mobile", "status", "created_at", "approved_by", "approved_at")
    list_filter = ("status",)
    search_fields = ("shop_name", "mobile")
    readonly_fields = ("customer", "shop_name", "mobile", "status", "approved_by", "approved_at")
    actions = [approve_mobile_requests, reject_mobile_requests]

    # requests come from customers, decisions go through the actions
    def has_add_permission(self, request):
        return False
