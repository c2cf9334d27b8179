from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from core.exceptions import InvalidAddons, InvalidRange
from reservations.pricing import AddonSelection, Rule, price

MARCH_1 = date(2024, 3, 1)
MARCH_6 = date(2024, 3, 6)


class PriceTests(SimpleTestCase):
	def test_base_price_is_rate_times_days(self) -> None:
		quote = price(Decimal('100.00'), MARCH_1, MARCH_6)

		self.assertEqual(quote.days, 5)
		self.assertEqual(quote.base, Decimal('500.00'))
		self.assertEqual(quote.addons_total, Decimal('0.00'))
		self.assertEqual(quote.total, Decimal('500.00'))
		self.assertEqual(quote.lines, ())

	def test_per_day_addon_scales_with_days(self) -> None:
		quote = price(Decimal('100.00'), MARCH_1, MARCH_6, AddonSelection(driver=True))

		self.assertEqual(quote.addons_total, Decimal('250.00'))
		self.assertEqual(quote.total, Decimal('750.00'))
		self.assertEqual(quote.lines[0].rule, Rule.PER_DAY)

	def test_every_addon_rule(self) -> None:
		addons = AddonSelection(
			driver=True,
			extra_km_packs=2,
			delivery=True,
			child_seats=2,
			navigation=True,
			insurance='full',
		)
		quote = price(Decimal('100.00'), MARCH_1, MARCH_6, addons)
		amounts = {line.code: line.amount for line in quote.lines}

		self.assertEqual(
			amounts,
			{
				'driver': Decimal('250.00'),
				'extra_km_packs': Decimal('40.00'),
				'delivery': Decimal('30.00'),
				'child_seats': Decimal('100.00'),
				'navigation': Decimal('40.00'),
				'insurance_full': Decimal('150.00'),
			},
		)
		self.assertEqual(quote.addons_total, Decimal('610.00'))
		self.assertEqual(quote.total, Decimal('1110.00'))

	def test_basic_insurance_tier(self) -> None:
		quote = price(Decimal('40.00'), MARCH_1, date(2024, 3, 3), AddonSelection(insurance='basic'))
		self.assertEqual(quote.addons_total, Decimal('30.00'))
		self.assertEqual(quote.total, Decimal('110.00'))

	def test_same_inputs_same_quote(self) -> None:
		addons = AddonSelection(delivery=True, child_seats=1)
		self.assertEqual(price(Decimal('55.50'), MARCH_1, MARCH_6, addons), price(Decimal('55.50'), MARCH_1, MARCH_6, addons))

	def test_empty_or_inverted_range_is_invalid(self) -> None:
		with self.assertRaises(InvalidRange):
			price(Decimal('100.00'), MARCH_1, MARCH_1)
		with self.assertRaises(InvalidRange):
			price(Decimal('100.00'), MARCH_6, MARCH_1)

	@override_settings(
		RENTAL_ADDON_PRICES={
			'driver': Decimal('60.00'),
			'extra_km_pack': Decimal('20.00'),
			'delivery': Decimal('30.00'),
			'child_seat': Decimal('10.00'),
			'navigation': Decimal('8.00'),
			'insurance_basic': Decimal('15.00'),
			'insurance_full': Decimal('30.00'),
		}
	)
	def test_unit_prices_come_from_settings(self) -> None:
		quote = price(Decimal('100.00'), MARCH_1, MARCH_6, AddonSelection(driver=True))
		self.assertEqual(quote.addons_total, Decimal('300.00'))


class AddonSelectionTests(SimpleTestCase):
	def test_camel_case_payload(self) -> None:
		addons = AddonSelection.from_payload(
			{
				'driver': True,
				'extraKmQty': '2',
				'childSeat': True,
				'childSeatQty': 3,
				'gpsNavigation': 'yes',
				'insurance': True,
				'insuranceType': 'full',
			}
		)
		self.assertEqual(
			addons,
			AddonSelection(driver=True, extra_km_packs=2, child_seats=3, navigation=True, insurance='full'),
		)

	def test_snake_case_payload(self) -> None:
		addons = AddonSelection.from_payload({'extra_km_packs': 1, 'delivery': 'true', 'insurance': 'basic'})
		self.assertEqual(addons, AddonSelection(extra_km_packs=1, delivery=True, insurance='basic'))

	def test_child_seat_flag_without_quantity_means_one_seat(self) -> None:
		self.assertEqual(AddonSelection.from_payload({'childSeat': True}).child_seats, 1)

	def test_insurance_tier_ignored_when_insurance_is_off(self) -> None:
		addons = AddonSelection.from_payload({'insurance': False, 'insuranceType': 'full'})
		self.assertEqual(addons.insurance, '')

	def test_empty_payload(self) -> None:
		self.assertEqual(AddonSelection.from_payload(None), AddonSelection())
		self.assertEqual(AddonSelection.from_payload({}), AddonSelection())

	def test_invalid_selections_are_rejected(self) -> None:
		for payload in (
			{'childSeats': -1},
			{'extraKmPacks': '1.5'},
			{'extraKmPacks': 'many'},
			{'insurance': 'platinum'},
			['driver'],
		):
			with self.subTest(payload=payload), self.assertRaises(InvalidAddons):
				AddonSelection.from_payload(payload)
