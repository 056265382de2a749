from django.db import models


# ===================== CATEGORY MODEL =====================
class Category(models.Model):
    name = models.CharField(max_length=50, unique=True)
    description = models.CharField(max_length=200, blank=True, default="")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


# ===================== PRODUCT MODEL =====================
class Product(models.Model):
    PRICE_FIXED = "fixed"
    PRICE_PER_KG = "per_kg"
    PRICE_TYPES = (
        (PRICE_FIXED, "Fixed"),
        (PRICE_PER_KG, "Per kg"),
    )

    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True,
                                 related_name="products")
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=500, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2)
    price_type = models.CharField(max_length=10, choices=PRICE_TYPES, default=PRICE_FIXED)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def is_weight_priced(self):
        return self.price_type == self.PRICE_PER_KG

    def in_category(self, keyword):
        """True if the product's category name contains ``keyword`` (case-insensitive)."""
        if not self.category or not keyword:
            return False
        return keyword.lower() in self.category.name.lower()
