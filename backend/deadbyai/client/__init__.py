from deadbyai.client.network import GameClient
from deadbyai.client.projection import ClientProjection

__all__ = ['GameClient', 'ClientProjection']
