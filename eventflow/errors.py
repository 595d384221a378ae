"""
エラー分類

  ConfigurationError  ストリーム/コンシューマの調整に失敗 (起動時に致命的)
  NotFoundError       レコードが存在しない (API では 404)
  StateError          現在の状態では実行できない操作 (API では 500)
  TransportError      ブローカーとの通信失敗 (購読・発行経路を終了させる)
"""


class EventFlowError(Exception):
    """このパッケージが送出する例外の基底クラス"""


class ConfigurationError(EventFlowError):
    pass


class NotFoundError(EventFlowError):
    pass


class StateError(EventFlowError):
    pass


class TransportError(EventFlowError):
    pass
