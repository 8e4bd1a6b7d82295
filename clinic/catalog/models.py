from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _


class ProcedureCategory(models.Model):
    name = models.CharField(_("Categoria"), max_length=80)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = _("Procedure categories")

    def __str__(self):
        return self.name


class Procedure(models.Model):
    category = models.ForeignKey(
        ProcedureCategory, on_delete=models.PROTECT, related_name="procedures", null=True, blank=True
    )
    name = models.CharField(_("Procedimento"), max_length=120)
    price = models.DecimalField(_("Preço"), max_digits=10, decimal_places=2)
    duration_minutes = models.PositiveIntegerField(_("Duração (minutos)"), default=60)
    sessions_required = models.PositiveIntegerField(
        _("Sessões"), default=1, validators=[MinValueValidator(1)],
        help_text=_("Number of sessions sold as one package"),
    )
    requires_specifications = models.BooleanField(_("Exige especificações"), default=False)
    description = models.TextField(_("Descrição"), blank=True)
    is_active = models.BooleanField(_("Ativo"), default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def is_package(self):
        return self.sessions_required > 1


class Specification(models.Model):
    """A selectable pricing unit of a procedure (treatment area or area group)."""
    GENDER_CHOICES = [("any", _("Qualquer")), ("female", _("Feminino")), ("male", _("Masculino"))]

    procedure = models.ForeignKey(Procedure, on_delete=models.CASCADE, related_name="specifications")
    name = models.CharField(_("Especificação"), max_length=120)
    description = models.TextField(_("Descrição"), blank=True)
    price = models.DecimalField(_("Preço"), max_digits=10, decimal_places=2)
    gender = models.CharField(_("Gênero"), max_length=10, choices=GENDER_CHOICES, default="any")
    display_order = models.PositiveIntegerField(_("Ordem"), default=0)
    is_active = models.BooleanField(_("Ativo"), default=True)

    class Meta:
        ordering = ["procedure", "display_order", "name"]

    def __str__(self):
        return f"{self.procedure} → {self.name}"


class DiscountConfig(models.Model):
    """Quantity tier: selecting between min_groups and max_groups units earns the percentage."""
    procedure = models.ForeignKey(Procedure, on_delete=models.CASCADE, related_name="discount_configs")
    min_groups = models.PositiveIntegerField(_("Mínimo de grupos"), validators=[MinValueValidator(1)])
    max_groups = models.PositiveIntegerField(
        _("Máximo de grupos"), null=True, blank=True, help_text=_("Empty means no upper limit")
    )
    discount_percentage = models.DecimalField(
        _("Desconto (%)"), max_digits=5, decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01")), MaxValueValidator(Decimal("100"))],
    )
    is_active = models.BooleanField(_("Ativo"), default=True)

    class Meta:
        ordering = ["procedure", "min_groups"]

    def __str__(self):
        upper = self.max_groups if self.max_groups is not None else "∞"
        return f"{self.procedure}: {self.min_groups}-{upper} → {self.discount_percentage}%"

    def overlaps(self, other):
        own_max = self.max_groups if self.max_groups is not None else float("inf")
        other_max = other.max_groups if other.max_groups is not None else float("inf")
        return self.min_groups <= other_max and other.min_groups <= own_max

    def clean(self):
        if self.max_groups is not None and self.min_groups is not None and self.max_groups < self.min_groups:
            raise ValidationError({"max_groups": _("O máximo não pode ser menor que o mínimo.")})
        if not self.is_active or not self.procedure_id or self.min_groups is None:
            return
        siblings = DiscountConfig.objects.filter(procedure_id=self.procedure_id, is_active=True)
        if self.pk:
            siblings = siblings.exclude(pk=self.pk)
        for other in siblings:
            if self.overlaps(other):
                raise ValidationError(
                    _("A faixa se sobrepõe a outra configuração ativa (%(other)s)."),
                    params={"other": other},
                    code="overlapping_tier",
                )
