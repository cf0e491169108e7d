"""Serializers for account registration, sign-in and profile management."""

from __future__ import annotations

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import RegexValidator
from rest_framework import serializers

from .models import CustomerProfile, User


class EmailSerializer(serializers.Serializer):
    email = serializers.EmailField(error_messages={'required': 'Email is required', 'blank': 'Email is required'})

    def validate_email(self, value: str) -> str:
        email = value.strip().lower()
        domain = email.split("@")[-1]
        if "." not in domain:
            raise serializers.ValidationError("Email domain must include a valid top-level domain")
        return email


class RegistrationSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    confirm_password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'phone_number', 'password', 'confirm_password']
        extra_kwargs = {
            'first_name': {'required': True, 'allow_blank': False},
            'last_name': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value: str) -> str:
        email = EmailSerializer().validate_email(value)
        if User.objects.filter(email__iexact=email).exists():
            raise serializers.ValidationError("An account with this email already exists")
        return email

    def validate(self, attrs):
        if attrs['password'] != attrs['confirm_password']:
            raise serializers.ValidationError({'confirm_password': "Passwords do not match"})
        candidate = User(email=attrs['email'], first_name=attrs['first_name'], last_name=attrs['last_name'])
        try:
            validate_password(attrs['password'], user=candidate)
        except DjangoValidationError as exc:
            raise serializers.ValidationError({'password': list(exc.messages)}) from exc
        return attrs

    def create(self, validated_data) -> User:
        validated_data.pop('confirm_password')
        password = validated_data.pop('password')
        user = User.objects.create_user(password=password, email_verified=False, **validated_data)
        return user


class SignInSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class PasswordResetSerializer(serializers.Serializer):
    token = serializers.CharField()
    password = serializers.CharField(write_only=True, min_length=8, trim_whitespace=False)


class CustomerProfileSerializer(serializers.ModelSerializer):
    first_name = serializers.CharField(source='user.first_name', required=False, max_length=150)
    last_name = serializers.CharField(source='user.last_name', required=False, max_length=150)
    phone_number = serializers.CharField(
        source='user.phone_number',
        required=False,
        allow_blank=True,
        max_length=20,
        validators=[RegexValidator(r'^[0-9+() -]{7,}$', 'Enter a valid phone number.')],
    )
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = CustomerProfile
        fields = [
            'email',
            'first_name',
            'last_name',
            'phone_number',
            'title',
            'gender',
            'date_of_birth',
            'nationality',
            'passport_number',
            'address_line1',
            'city',
            'country',
            'postcode',
        ]

    def update(self, instance: CustomerProfile, validated_data) -> CustomerProfile:
        user_data = validated_data.pop('user', {})
        if user_data:
            for field, value in user_data.items():
                setattr(instance.user, field, value)
            instance.user.save(update_fields=list(user_data))
        return super().update(instance, validated_data)
