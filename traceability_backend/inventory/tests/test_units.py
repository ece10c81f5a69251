# inventory/tests/test_units.py

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from inventory.services.exceptions import IncompatibleUnitsError
from inventory.services.units import (
    are_compatible,
    canonical_unit,
    convert,
    normalize_allergens,
    normalize_quantity,
    parse_iso_date,
)


class UnitConversionTests(SimpleTestCase):
    def test_kg_to_g(self):
        result = convert(Decimal("1.5"), "kg", "g")
        self.assertEqual(result.quantity, Decimal("1500"))
        self.assertEqual(result.unit, "g")

    def test_ml_to_litres(self):
        self.assertEqual(convert(250, "ml", "L").quantity, Decimal("0.25"))

    def test_same_unit_is_identity(self):
        self.assertEqual(convert("7", "pcs", "pcs").quantity, Decimal("7"))

    def test_aliases_are_canonicalized(self):
        self.assertEqual(canonical_unit("Litre"), "L")
        self.assertEqual(canonical_unit("kgs"), "kg")
        self.assertEqual(canonical_unit("l"), "L")

    def test_cross_dimension_raises(self):
        with self.assertRaises(IncompatibleUnitsError):
            convert(1, "kg", "L")

        with self.assertRaises(IncompatibleUnitsError):
            convert(1, "pcs", "g")

    def test_unknown_unit_raises(self):
        with self.assertRaises(IncompatibleUnitsError):
            convert(1, "stone", "kg")

    def test_compatibility_check_never_raises(self):
        self.assertTrue(are_compatible("g", "kg"))
        self.assertFalse(are_compatible("g", "ml"))
        self.assertFalse(are_compatible("g", "furlong"))


class QuantityNormalizationTests(SimpleTestCase):
    def test_rejects_negative(self):
        with self.assertRaises(ValidationError):
            normalize_quantity("-1")

    def test_rejects_bool_and_garbage(self):
        for bad in (True, "abc", "NaN", "Infinity", None, ""):
            with self.subTest(value=bad):
                with self.assertRaises(ValidationError):
                    normalize_quantity(bad)

    def test_zero_only_when_allowed(self):
        self.assertEqual(normalize_quantity("0"), Decimal("0"))
        with self.assertRaises(ValidationError):
            normalize_quantity("0", allow_zero=False)

    def test_allergens_sorted_lowercase_unique(self):
        self.assertEqual(normalize_allergens(["Gluten", "milk", "gluten", " "]), ["gluten", "milk"])

    def test_parse_iso_date(self):
        self.assertIsNone(parse_iso_date(""))
        self.assertEqual(parse_iso_date("2026-03-02").isoformat(), "2026-03-02")
        with self.assertRaises(ValidationError):
            parse_iso_date("02/03/2026")
