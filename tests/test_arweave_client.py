"""Tests for the Arweave storage client

Run with pytest from project root:
    pytest tests/test_arweave_client.py -v
"""

from unittest.mock import MagicMock, patch

import pytest

from arweave_client import ArweaveClient


class TestArweaveClient:
    """Tests for wallet loading and chunked uploads against a mocked SDK"""

    def test_missing_wallet(self, tmp_path):
        client = ArweaveClient(tmp_path / "arweave-wallet.json")
        with pytest.raises(FileNotFoundError):
            client.address

    def test_wallet_uses_gateway(self, tmp_path):
        """The wallet is loaded once and pointed at the configured gateway"""
        (tmp_path / "arweave-wallet.json").write_text("{}")
        wallet = MagicMock(address="addr", balance="1.25")
        with patch("arweave_client.arweave.Wallet", return_value=wallet) as wallet_cls:
            client = ArweaveClient(tmp_path / "arweave-wallet.json", "https://gw.test/")
            assert client.address == "addr"
            assert client.balance() == 1.25
        wallet_cls.assert_called_once()
        assert wallet.api_url == "https://gw.test"
        assert client.url_for("tx1") == "https://gw.test/tx1"

    def test_upload_file(self, tmp_path):
        """Tags are added, the transaction signed and chunks uploaded until complete"""
        (tmp_path / "arweave-wallet.json").write_text("{}")
        image = tmp_path / "punk_1.png"
        image.write_bytes(b"\x89PNG")

        tx = MagicMock(id="tx42")
        uploader = MagicMock(pct_complete=100)
        type(uploader).is_complete = property(lambda self: self.upload_chunk.call_count >= 2)

        with patch("arweave_client.arweave.Wallet", return_value=MagicMock()), \
                patch("arweave_client.Transaction", return_value=tx), \
                patch("arweave_client.get_uploader", return_value=uploader):
            client = ArweaveClient(tmp_path / "arweave-wallet.json")
            tx_id = client.upload_file(image, "image/png", {"Punk-Id": 1})

        assert tx_id == "tx42"
        tx.add_tag.assert_any_call("Content-Type", "image/png")
        tx.add_tag.assert_any_call("Punk-Id", "1")
        tx.sign.assert_called_once()
        assert uploader.upload_chunk.call_count == 2
