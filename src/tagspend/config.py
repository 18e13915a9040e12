"""
Configuration management using pydantic-settings.

Every value can be set through the environment with the TAGSPEND_ prefix
(e.g. TAGSPEND_NETWORK=signet) or a .env file. Defaults reproduce the
reference testnet spend.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from tagspend.constants import (
    DEFAULT_TX_VERSION,
    MAX_SATOSHIS,
    MAX_TX_VERSION,
    MIN_TX_VERSION,
    STANDARD_DUST_LIMIT,
)
from tagspend.models import ChangeAddressNetwork, NetworkType, Utxo


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TAGSPEND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    network: NetworkType = NetworkType.TESTNET

    # Locking script
    pubkey: str = "0242f9da15eae56fe6aca65136738905c0afdb2c4edf379e107b3b00b98c7fc9f0"
    tag: str = "1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"

    # Coin being spent
    utxo_txid: str = "4604a462372fc7f838e8e746685b53bdae1222e44be4601456c7e2882074028c"
    utxo_vout: int = Field(default=0, ge=0, le=0xFFFFFFFF)
    utxo_amount: int = Field(
        default=121_768, ge=0, le=MAX_SATOSHIS, description="UTXO value in sats"
    )

    # Outputs
    destination_address: str = "tb1qd4erjn4tvt52c92yv66lwju9pzsd2ltph0xe5s"
    change_address: str = "tb1q5dgehs94wf5mgfasnfjsh4dqv6hz8e35w4w7tk"
    send_amount: int = Field(
        default=7_000, gt=0, le=MAX_SATOSHIS, description="Sats sent to the destination"
    )
    fee_amount: int = Field(default=2_000, ge=0, le=MAX_SATOSHIS, description="Fixed fee in sats")
    change_address_network: ChangeAddressNetwork = ChangeAddressNetwork.MAINNET
    dust_threshold: int = Field(default=STANDARD_DUST_LIMIT, ge=0)

    tx_version: int = Field(default=DEFAULT_TX_VERSION, ge=MIN_TX_VERSION, le=MAX_TX_VERSION)

    # Name of the secret holding the private key (hex or WIF) for inline signing
    private_key_secret: str = "TAGSPEND_PRIVATE_KEY"

    log_level: str = "INFO"

    @property
    def utxo(self) -> Utxo:
        return Utxo(txid=self.utxo_txid, vout=self.utxo_vout, amount=self.utxo_amount)


def get_settings(**overrides: object) -> Settings:
    return Settings(**overrides)
