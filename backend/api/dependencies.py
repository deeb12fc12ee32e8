from services.chain_oracle import ChainOracleClient
import logging

logger = logging.getLogger(__name__)

_oracle_client = None

def get_chain_oracle() -> ChainOracleClient:
    """Shared Moralis client; overridden in tests with a stub oracle."""
    global _oracle_client
    if _oracle_client is None:
        _oracle_client = ChainOracleClient()
        logger.debug("Chain oracle client created for chain %s", _oracle_client.chain)
    return _oracle_client
