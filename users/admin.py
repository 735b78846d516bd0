from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import Role, User


@admin.register(User)
class SchoolUserAdmin(UserAdmin):
    fieldsets = UserAdmin.fieldsets + (("School", {"fields": ("roles", "phone_number")}),)
    filter_horizontal = UserAdmin.filter_horizontal + ("roles",)


admin.site.register(Role)
