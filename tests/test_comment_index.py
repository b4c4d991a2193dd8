from prreview.comment_index import CommentAnchorIndex, comment_key
from prreview.diff_parser import parse_diff
from prreview.models import AIReviewComment, DiffLine, LineComment


DIFF = """diff --git a/app.py b/app.py
@@ -5,2 +5,2 @@
-old = 1
+new = 1
 keep = 2
"""


def make_comment(comment_id, path, line, side):
    return LineComment(id=comment_id, path=path, line=line, side=side, body=f"comment {comment_id}")


def test_comments_grouped_by_key_in_insertion_order():
    first = make_comment("1", "app.py", 5, "RIGHT")
    second = make_comment("2", "app.py", 5, "RIGHT")
    other = make_comment("3", "app.py", 5, "LEFT")
    index = CommentAnchorIndex([first, other, second])

    assert index.get("app.py", 5, "RIGHT") == [first, second]
    assert index.get("app.py", 5, "LEFT") == [other]
    assert comment_key("app.py", 5, "RIGHT") in index
    assert len(index) == 3


def test_line_lookup_concatenates_left_before_right():
    left = make_comment("L", "app.py", 6, "LEFT")
    right = make_comment("R", "app.py", 6, "RIGHT")
    index = CommentAnchorIndex([right, left])

    context = DiffLine(type="context", content="keep = 2", old_line_number=6, new_line_number=6)
    assert index.comments_for_line("app.py", context) == [left, right]


def test_absent_line_numbers_contribute_nothing():
    index = CommentAnchorIndex([make_comment("1", "app.py", 5, "LEFT")])
    addition = DiffLine(type="addition", content="new = 1", new_line_number=5)
    header = DiffLine(type="hunk-header", content="")

    assert index.comments_for_line("app.py", addition) == []
    assert index.comments_for_line("app.py", header) == []
    assert index.get("app.py", None, "LEFT") == []


def test_orphaned_comments_are_kept_and_reported():
    files = parse_diff(DIFF).files
    anchored = make_comment("1", "app.py", 5, "RIGHT")
    outside = make_comment("2", "app.py", 40, "RIGHT")
    other_file = make_comment("3", "lib.py", 1, "RIGHT")
    index = CommentAnchorIndex([anchored, outside, other_file])

    assert index.orphaned(files) == [outside, other_file]
    assert index.get("app.py", 40, "RIGHT") == [outside]
    assert index.count_for_path("app.py") == 2
    assert index.count_for_path("lib.py") == 1
    assert index.count_for_path("missing.py") == 0


def test_ai_comments_can_be_indexed():
    comment = AIReviewComment(id="r-comment-0", path="app.py", line=5, body="Rename this")
    index = CommentAnchorIndex([comment])

    new_line = parse_diff(DIFF).files[0].hunks[0].lines[2]
    assert index.comments_for_line("app.py", new_line) == [comment]
