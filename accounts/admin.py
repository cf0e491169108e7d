from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import AuthSession, CustomerProfile, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
	list_display = ('email', 'first_name', 'last_name', 'points_available', 'account_status', 'email_verified', 'is_staff')
	list_filter = ('account_status', 'email_verified', 'is_staff')
	search_fields = ('email', 'first_name', 'last_name')
	ordering = ('email',)
	filter_horizontal = ('groups', 'user_permissions')
	fieldsets = (
		(None, {'fields': ('email', 'password')}),
		('Personal info', {'fields': ('first_name', 'last_name', 'phone_number')}),
		('Loyalty', {'fields': ('points_available', 'account_status')}),
		('Verification', {'fields': ('email_verified', 'email_verified_at')}),
		('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
		('Important dates', {'fields': ('last_login', 'date_joined')}),
	)
	add_fieldsets = (
		(
			None,
			{
				'classes': ('wide',),
				'fields': ('email', 'password1', 'password2', 'is_staff', 'is_superuser'),
			},
		),
	)


@admin.register(CustomerProfile)
class CustomerProfileAdmin(admin.ModelAdmin):
	list_display = ('user', 'nationality', 'city', 'country')
	search_fields = ('user__email', 'passport_number', 'city', 'country')
	readonly_fields = ('user',)


@admin.register(AuthSession)
class AuthSessionAdmin(admin.ModelAdmin):
	list_display = ('user', 'created_at', 'expires_at')
	search_fields = ('user__email',)
	readonly_fields = ('user', 'token', 'created_at')
