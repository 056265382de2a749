from django.contrib import admin

from shop.models import Bill, BillItem, Category, Product


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "is_active", "created_at")
    search_fields = ("name",)


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "price", "price_type", "is_active")
    list_filter = ("category", "price_type", "is_active")
    search_fields = ("name",)


class BillItemInline(admin.TabularInline):
    model = BillItem
    extra = 0
    can_delete = False
    readonly_fields = ("position", "product", "name", "quantity", "weight", "price", "discount", "discount_type")


# Bills are created by checkout only and never edited
@admin.register(Bill)
class BillAdmin(admin.ModelAdmin):
    list_display = ("bill_number", "customer_name", "customer_phone", "total", "has_cake_items", "created_at")
    list_filter = ("has_cake_items",)
    search_fields = ("bill_number", "customer_name", "customer_phone")
    inlines = [BillItemInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
