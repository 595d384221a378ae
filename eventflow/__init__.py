"""
eventflow — イベント駆動ワークフローのサンプル実装

Redis Streams を永続イベントログとして使い、注文・決済・通知・分析の
4 サービスをイベントルートで結ぶ。
"""

__version__ = "0.1.0"
