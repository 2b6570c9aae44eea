from django.test import SimpleTestCase, override_settings

from finance.fiscal.refs import correlation_ref


class CorrelationRefTests(SimpleTestCase):
    def test_same_id_always_gives_same_ref(self):
        self.assertEqual(correlation_ref(42), correlation_ref(42))
        self.assertEqual(correlation_ref(42, prefix="nfe"), "nfe-42")

    def test_distinct_ids_never_collide(self):
        refs = {correlation_ref(document_id) for document_id in range(1, 1001)}
        self.assertEqual(len(refs), 1000)

    @override_settings(FISCAL_REF_PREFIX="Loja_01")
    def test_prefix_comes_from_settings_and_is_normalized(self):
        self.assertEqual(correlation_ref(7), "loja01-7")

    def test_blank_prefix_falls_back_to_default(self):
        self.assertEqual(correlation_ref(7, prefix="  "), "nfe-7")

    def test_rejects_non_positive_ids(self):
        with self.assertRaises(ValueError):
            correlation_ref(0)
        with self.assertRaises(ValueError):
            correlation_ref(-3)
