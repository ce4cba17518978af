from __future__ import annotations

import unittest
from datetime import date, datetime

from sheet_ledger.normalization import (
    MONTH_NAMES,
    clean_cell_text,
    normalise_action,
    normalise_material,
    normalise_report,
    normalise_status,
    parse_date,
    split_members,
)


class DateParsingTests(unittest.TestCase):
    def test_indonesian_day_month_year(self):
        self.assertEqual(parse_date("13 Oktober 2025"), date(2025, 10, 13))
        self.assertEqual(parse_date("1 Mei 2025"), date(2025, 5, 1))
        self.assertEqual(parse_date("5 Agustus 2025"), date(2025, 8, 5))
        self.assertEqual(parse_date("24 Desember 2024"), date(2024, 12, 24))

    def test_day_range_resolves_to_first_day(self):
        self.assertEqual(parse_date("16-17 Oktober 2025"), date(2025, 10, 16))
        self.assertEqual(parse_date("16 - 17 Oktober 2025"), date(2025, 10, 16))
        self.assertEqual(parse_date("16\u201317 Oktober 2025"), date(2025, 10, 16))

    def test_english_forms(self):
        self.assertEqual(parse_date("13 October 2025"), date(2025, 10, 13))
        self.assertEqual(parse_date("13 Oct 2025"), date(2025, 10, 13))
        self.assertEqual(parse_date("Oct 13, 2025"), date(2025, 10, 13))

    def test_numeric_forms_are_day_first(self):
        self.assertEqual(parse_date("2025-10-13"), date(2025, 10, 13))
        self.assertEqual(parse_date("2025-10-13 00:00:00"), date(2025, 10, 13))
        self.assertEqual(parse_date("13/10/2025"), date(2025, 10, 13))
        self.assertEqual(parse_date("03/04/2025"), date(2025, 4, 3))

    def test_typed_values_pass_through(self):
        self.assertEqual(parse_date(date(2025, 1, 2)), date(2025, 1, 2))
        self.assertEqual(parse_date(datetime(2025, 1, 2, 9, 30)), date(2025, 1, 2))

    def test_unparseable_text_yields_none_without_raising(self):
        for value in ("", "   ", None, "belum dijadwalkan", "13 Foo 2025", "31 Februari 2025", "TBD", "2025-13-40"):
            with self.subTest(value=value):
                self.assertIsNone(parse_date(value))

    def test_month_table_covers_both_languages(self):
        for name in ("januari", "februari", "maret", "april", "mei", "juni", "juli",
                     "agustus", "september", "oktober", "november", "desember"):
            self.assertIn(name, MONTH_NAMES)
        self.assertEqual(MONTH_NAMES["okt"], MONTH_NAMES["october"])


class LabelTableTests(unittest.TestCase):
    def test_status_labels(self):
        for raw in ("done", "DONE", " Done ", "Selesai"):
            with self.subTest(raw=raw):
                self.assertEqual(normalise_status(raw), "Done")
        self.assertEqual(normalise_status(" On  Progress "), "Progress")
        self.assertEqual(normalise_status("in progress"), "Progress")
        self.assertEqual(normalise_status("on hold"), "Hold")
        self.assertEqual(normalise_status("pending"), "Hold")

    def test_unknown_status_is_unset(self):
        for raw in ("maybe", "", None, "Done!"):
            with self.subTest(raw=raw):
                self.assertEqual(normalise_status(raw), "")

    def test_action_labels(self):
        self.assertEqual(normalise_action("On Site"), "Onsite")
        self.assertEqual(normalise_action("on-site"), "Onsite")
        self.assertEqual(normalise_action("REMOTE"), "Remote")
        self.assertEqual(normalise_action("visit"), "")

    def test_project_labels(self):
        self.assertEqual(normalise_report("done"), "Done")
        self.assertEqual(normalise_report("n/a"), "")
        self.assertEqual(normalise_material("done installation"), "Done Installation")
        self.assertEqual(normalise_material("Logistics"), "Logistic")
        self.assertEqual(normalise_material("ordered"), "")


class MemberAndTextTests(unittest.TestCase):
    def test_split_members(self):
        self.assertEqual(split_members("Budi, Sari & Andi"), ["Budi", "Sari", "Andi"])
        self.assertEqual(split_members("Budi,, Sari ,"), ["Budi", "Sari"])
        self.assertEqual(split_members("Sari, Sari"), ["Sari"])
        self.assertEqual(split_members(""), [])
        self.assertEqual(split_members(None), [])

    def test_clean_cell_text(self):
        self.assertEqual(clean_cell_text("\ufeff\u201cAcme\u201d\x00 "), '"Acme"')
        self.assertEqual(clean_cell_text("  PT   Acme  "), "PT Acme")
        self.assertEqual(clean_cell_text(None), "")

    def test_names_that_read_like_missing_values_are_kept(self):
        self.assertEqual(clean_cell_text("NaN"), "NaN")
        self.assertEqual(clean_cell_text("Nan"), "Nan")
        self.assertEqual(split_members("Nan"), ["Nan"])
        self.assertEqual(split_members("Budi & Nan"), ["Budi", "Nan"])

    def test_clean_cell_text_can_keep_line_breaks(self):
        self.assertEqual(clean_cell_text("Ganti adaptor \r\n Tes ulang ", keep_newlines=True), "Ganti adaptor\nTes ulang")
        self.assertEqual(clean_cell_text("Ganti adaptor\nTes ulang"), "Ganti adaptor Tes ulang")


if __name__ == "__main__":
    unittest.main()
