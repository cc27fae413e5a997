from django.contrib import admin
from django.core.exceptions import PermissionDenied

"""Base admin for append-only and view-backed models."""
class ReadOnlyAdmin(admin.ModelAdmin):
    list_per_page = 50

    # make every model field readonly
    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    # The change page stays viewable; the fields are all readonly.
    def has_change_permission(self, request, obj=None):
        return True

    def save_model(self, request, obj, form, change):
        raise PermissionDenied("Rows cannot be changed via the admin.")

    # Only actions declared on the subclass; no delete_selected
    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    def get_list_filter(self, request):
        possible = {f.name for f in self.model._meta.fields}
        filters = []
        for candidate in ("pipeline", "import_type", "entry_type", "status"):
            if candidate in possible:
                filters.append(candidate)
        return tuple(filters)

    def get_search_fields(self, request):
        possible = {f.name for f in self.model._meta.fields}
        search = []
        for candidate in ("file_name", "description"):
            if candidate in possible:
                search.append(candidate)
        return tuple(search)
