"""
Django admin configuration for core app.
"""
from django.contrib import admin


admin.site.site_header = "Tender Hub Administration"
admin.site.site_title = "Tender Hub Admin"
admin.site.index_title = "Welcome to Tender Hub Administration"
