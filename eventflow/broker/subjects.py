"""
サブジェクト — ドット区切りの階層トピック

  order.placed        具体的なサブジェクト
  order.*             "*" はちょうど 1 トークンにマッチ
  order.>             末尾の ">" は 1 つ以上の残りトークンにマッチ

  order.>  は order.placed / order.cancelled にマッチし、
  payment.authorized にはマッチしない。
"""

SEPARATOR = "."
SINGLE = "*"
TAIL = ">"


def tokens(subject: str) -> list[str]:
    return subject.split(SEPARATOR)


def validate(subject: str, wildcards: bool = True) -> str:
    """サブジェクトの構文を検証し、そのまま返す。"""
    if not subject:
        raise ValueError("Subject must not be empty")

    parts = tokens(subject)
    for i, token in enumerate(parts):
        if not token or any(c.isspace() for c in token):
            raise ValueError(f"Invalid subject: {subject!r}")
        if token in (SINGLE, TAIL):
            if not wildcards:
                raise ValueError(f"Wildcards are not allowed here: {subject!r}")
            if token == TAIL and i != len(parts) - 1:
                raise ValueError(f"'>' must be the last token: {subject!r}")
    return subject


def is_literal(subject: str) -> bool:
    return not any(t in (SINGLE, TAIL) for t in tokens(subject))


def matches(pattern: str, subject: str) -> bool:
    """具体的なサブジェクトがパターンにマッチするか判定する。"""
    p = tokens(pattern)
    s = tokens(subject)

    for i, token in enumerate(p):
        if token == TAIL:
            return len(s) > i
        if i >= len(s):
            return False
        if token != SINGLE and token != s[i]:
            return False
    return len(p) == len(s)


def is_subset(filter_subject: str, pattern: str) -> bool:
    """
    filter_subject にマッチするすべてのサブジェクトが pattern にもマッチするか。

    コンシューマグループのフィルタは、所属ストリームのパターンの
    部分集合でなければならない。
    """
    f = tokens(filter_subject)
    p = tokens(pattern)

    for i, token in enumerate(p):
        if token == TAIL:
            return len(f) > i
        if i >= len(f):
            return False
        if f[i] == TAIL:
            return False
        if token == SINGLE:
            continue
        if f[i] != token:
            return False
    return len(f) == len(p)


def overlaps(a: str, b: str) -> bool:
    """2 つのパターンの両方にマッチするサブジェクトが存在するか。"""
    x = tokens(a)
    y = tokens(b)

    for i in range(min(len(x), len(y))):
        if x[i] == TAIL or y[i] == TAIL:
            return True
        if SINGLE in (x[i], y[i]):
            continue
        if x[i] != y[i]:
            return False
    return len(x) == len(y)
