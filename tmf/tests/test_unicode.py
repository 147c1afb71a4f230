"""Tests for Unicode filename handling (NFC/NFD) across scanning and matching.

macOS stores names decomposed (NFD) while sidecars written elsewhere carry
composed (NFC) names; both must meet on the same key.
"""

import os
import unicodedata

import pytest

from tmf.core.matcher import SidecarMatcher
from tmf.core.normalizer import base_key
from tmf.core.scanner import FileScanner

NFC = "NFC"
NFD = "NFD"


def _form(name, form):
    return unicodedata.normalize(form, name)


class TestBaseKeyNormalization:
    """base_key() folds both normalization forms together."""

    @pytest.mark.parametrize("name", ["café.jpg", "Ñandú.jpg", "Zürich_2019.png", "Åre.heic"])
    def test_forms_agree(self, name):
        assert base_key(_form(name, NFD)) == base_key(_form(name, NFC) + ".json")

    def test_asian_characters(self):
        assert base_key("東京タワー.jpg.json") == "東京タワー.jpg"

    def test_emoji(self):
        assert base_key("🎉party.jpg.supplemental-metadata.json") == "🎉party.jpg"


class TestMatchingAcrossForms:
    """Media and sidecar named in different forms still match."""

    def test_nfd_media_nfc_sidecar(self, temp_dir, write_file, write_sidecar):
        media_path = os.path.join(temp_dir, _form("café.jpg", NFD))
        sidecar_path = os.path.join(temp_dir, _form("café.jpg", NFC) + ".json")
        write_file(media_path)
        write_sidecar(sidecar_path, {})

        scan = FileScanner([temp_dir]).scan()
        if scan.sidecar_count != 1 or scan.media_count != 1:
            pytest.skip("filesystem folds normalization forms into one name")

        result = SidecarMatcher(scan.sidecars).find_match(scan.media[0])

        assert result.found
        assert unicodedata.normalize(NFC, os.path.basename(result.sidecar_path)) == \
            _form("café.jpg", NFC) + ".json"

    def test_original_path_preserved(self, temp_dir, write_file):
        write_file(os.path.join(temp_dir, _form("Ñandú.jpg", NFD)))

        scan = FileScanner([temp_dir]).scan()

        # The on-disk name is used for I/O, untouched by normalization
        assert os.path.exists(scan.media[0].path)
        assert os.path.basename(scan.media[0].path) in os.listdir(temp_dir)
