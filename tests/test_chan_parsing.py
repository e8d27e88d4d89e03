from __future__ import annotations

from chanscraper.chan_parser import ChanParser
from chanscraper.models import IdKind

BASE = "https://chan.test"


def _parser() -> ChanParser:
    return ChanParser(BASE + "/")


def test_parse_boards_uses_board_items_with_descriptions():
    html = """
    <html><body>
      <ul class="boards-list">
        <li class="board-item"><a href="/board/b">Random</a><span class="board-description">Anything goes</span></li>
        <li class="board-item"><a href="/board/g">Technology</a></li>
        <li class="board-item"><a href="/board/b">Random again</a></li>
      </ul>
    </body></html>
    """
    boards = _parser().parse_boards(html)
    by_id = {b.id: b for b in boards}

    assert [b.id for b in boards][:2] == ["b", "g"]
    assert by_id["b"].name == "Random"
    assert by_id["b"].description == "Anything goes"
    assert by_id["b"].fallback is False
    # known boards are always unioned in
    assert {"acd", "pol", "tech"} <= set(by_id)
    assert by_id["acd"].fallback is True


def test_parse_boards_reads_description_from_next_sibling():
    html = """
    <div id="boardlist">
      <a href="/board/sci">Science</a><p class="board-description">Math and stuff</p>
    </div>
    """
    boards = _parser().parse_boards(html)
    sci = next(b for b in boards if b.id == "sci")
    assert sci.description == "Math and stuff"


def test_parse_boards_from_plain_link_plus_known_boards():
    html = '<html><body><p>Welcome</p><a href="/board/tech">Tech</a></body></html>'
    boards = _parser().parse_boards(html)
    ids = [b.id for b in boards]

    assert boards[0].id == "tech"
    assert boards[0].name == "Tech"
    assert boards[0].fallback is False
    assert sorted(ids) == sorted(["tech", "b", "acd", "pol"])


def test_parse_boards_without_links_uses_builtin_list():
    boards = _parser().parse_boards("<html><body><p>maintenance</p></body></html>")
    ids = [b.id for b in boards]

    assert "g" in ids and "lit" in ids
    assert "acd" in ids
    assert all(b.fallback for b in boards)
    assert len(ids) == len(set(ids))


def test_parse_boards_ids_are_unique():
    html = """
    <div class="boardlist">
      <a href="/board/b">b</a><a href="/board/b/">b again</a>
      <a href="/board/pol?x=1">pol</a><a href="/board/pol">pol again</a>
    </div>
    """
    ids = [b.id for b in _parser().parse_boards(html)]
    assert len(ids) == len(set(ids))


def test_parse_threads_reads_fields_and_reply_count_element():
    html = """
    <div class="catalog">
      <div class="thread" data-id="101">
        <h2 class="thread-title">First thread</h2>
        <div class="thread-text">Hello world</div>
        <span class="reply-count">42 replies</span>
        <img src="/uploads/101.jpg">
      </div>
      <div class="thread" id="thread-102">
        <div class="text">No title here</div>
        <img data-src="thumbs/102.png">
      </div>
      <div class="thread" data-id="101"><h2>duplicate</h2></div>
    </div>
    """
    threads = _parser().parse_threads(html, "b")

    assert [t.id for t in threads] == ["101", "102"]
    first, second = threads
    assert first.title == "First thread"
    assert first.text == "Hello world"
    assert first.reply_count == 42
    assert first.image_url == "https://chan.test/uploads/101.jpg"
    assert first.url == "https://chan.test/board/b/thread/101"
    assert first.board == "b"

    assert second.title == "Thread 102"
    assert second.reply_count == 0
    assert second.image_url == "https://chan.test/thumbs/102.png"


def test_parse_threads_reply_count_from_freeform_text():
    html = """
    <div class="thread-container" data-id="7">
      <div class="title">Counting</div>
      <p>37 posts so far</p>
    </div>
    """
    threads = _parser().parse_threads(html, "b")
    assert threads[0].reply_count == 37


def test_parse_threads_falls_back_to_thread_links():
    html = """
    <ul>
      <li><span><a href="/board/b/thread/555">Linked thread</a></span> some context</li>
      <li><span><a href="/board/b/thread/555">same again</a></span></li>
      <li><span><a href="/board/b/thread/556"></a></span></li>
    </ul>
    """
    threads = _parser().parse_threads(html, "b")

    assert [t.id for t in threads] == ["555", "556"]
    assert threads[0].title == "Linked thread"
    assert threads[0].text == "some context"
    assert threads[1].title == "Thread 556"


def test_parse_threads_empty_page_yields_empty_list():
    assert _parser().parse_threads("<html><body></body></html>", "b") == []


def test_image_urls_are_absolute_or_empty():
    p = _parser()
    assert p.absolute_url("") == ""
    assert p.absolute_url(None) == ""
    assert p.absolute_url("/a.png") == "https://chan.test/a.png"
    assert p.absolute_url("a.png") == "https://chan.test/a.png"
    assert p.absolute_url("//cdn.chan.test/a.png") == "https://cdn.chan.test/a.png"
    assert p.absolute_url("http://other.test/a.png") == "http://other.test/a.png"
    assert p.absolute_url("javascript:alert(1)") == ""


def test_parse_thread_with_op_and_replies():
    html = """
    <html><head><title>ignored</title></head><body>
      <div class="thread" id="thread-900">
        <h1 class="thread-title">Big thread</h1>
        <div class="post op-post" data-id="p900">
          <div class="thread-text">OP body text</div>
          <img src="/img/op.jpg">
        </div>
        <div class="post" data-id="901"><div class="post-text">first reply</div></div>
        <div class="post" id="post-902"><div class="message">second reply</div><img src="r.png"></div>
        <div class="post"><p>bare reply</p></div>
      </div>
    </body></html>
    """
    detail = _parser().parse_thread(html, "b", "900")

    assert detail.title == "Big thread"
    assert detail.text == "OP body text"
    assert detail.op_post_id == "p900"
    assert detail.image_url == "https://chan.test/img/op.jpg"
    assert detail.url == "https://chan.test/board/b/thread/900"
    assert detail.error is None

    assert [p.id for p in detail.posts] == ["901", "902", "900_reply_3"]
    assert [p.text for p in detail.posts] == ["first reply", "second reply", "bare reply"]
    assert detail.posts[1].image_url == "https://chan.test/r.png"
    assert detail.posts[0].id_kind is IdKind.EXTRACTED
    assert detail.posts[2].id_kind is IdKind.SYNTHESIZED


def test_parse_thread_title_from_page_title():
    html = """
    <html><head><title>Cricket thread - /b/ - Chan</title></head>
    <body><div class="reply" data-id="5">text</div></body></html>
    """
    detail = _parser().parse_thread(html, "b", "4")
    assert detail.title == "Cricket thread"
    assert detail.op_post_id == "4"


def test_parse_thread_title_synthesized_when_nothing_matches():
    detail = _parser().parse_thread("<html><body></body></html>", "b", "77")
    assert detail.title == "Thread 77"
    assert detail.posts == ()


def test_parse_thread_heuristic_replies_skip_nav_short_and_op():
    html = """
    <html><body>
      <header><div>Site header with plenty of text inside</div></header>
      <nav><div>Navigation links that are long enough</div></nav>
      <main>
        <div class="thread-text">This is the opening post of the thread</div>
        <div class="wrapper">
          <div>First heuristic reply body text here</div>
          <div>tiny</div>
          <article>Second heuristic reply body text here</article>
        </div>
      </main>
      <footer><div>Footer text that is long enough too</div></footer>
    </body></html>
    """
    detail = _parser().parse_thread(html, "b", "12")

    assert detail.text == "This is the opening post of the thread"
    # the .wrapper div qualifies too but is not reported next to its children
    assert [p.text for p in detail.posts] == [
        "First heuristic reply body text here",
        "Second heuristic reply body text here",
    ]
    assert [p.id for p in detail.posts] == ["12_reply_1", "12_reply_2"]
    assert all(p.id_kind is IdKind.SYNTHESIZED for p in detail.posts)


def test_parse_search_results():
    html = """
    <div class="search-results">
      <div class="search-result">
        <a href="/board/tech/thread/321"><span class="result-title">Linux help</span></a>
        <p class="result-snippet">how do I exit vim</p>
      </div>
      <div class="search-result">
        <h3>Elsewhere</h3>
        <a href="https://other.test/page">link</a>
      </div>
    </div>
    """
    results = _parser().parse_search(html)

    assert len(results) == 2
    first, second = results
    assert first.title == "Linux help"
    assert first.snippet == "how do I exit vim"
    assert first.url == "https://chan.test/board/tech/thread/321"
    assert first.board_id == "tech"
    assert first.thread_id == "321"

    assert second.title == "Elsewhere"
    assert second.url == "https://other.test/page"
    assert second.board_id is None
    assert second.thread_id is None


def test_extract_csrf_token_and_error_message():
    p = _parser()
    assert p.extract_csrf_token('<form><input name="_csrf" value="tok123"></form>') == "tok123"
    assert p.extract_csrf_token("<form></form>") == ""
    assert p.extract_error_message('<div class="error-message">Duplicate post</div>') == "Duplicate post"
    assert p.extract_error_message("<div>ok</div>") == ""


def test_ids_from_location():
    p = _parser()
    assert p.thread_id_from_location("/board/b/thread/555") == "555"
    assert p.thread_id_from_location("/board/b") is None
    assert p.post_id_from_location("/board/b/thread/555#p777") == "777"
    assert p.post_id_from_location("/board/b/thread/555") is None


def test_parser_is_deterministic():
    html = """
    <div class="thread" data-id="1"><h2>t</h2><img src="x.png"><span>3 replies</span></div>
    <div><a href="/board/b">b</a></div>
    """
    p = _parser()
    assert p.parse_threads(html, "b") == p.parse_threads(html, "b")
    assert p.parse_boards(html) == p.parse_boards(html)
    assert p.parse_thread(html, "b", "1") == ChanParser(BASE).parse_thread(html, "b", "1")


def test_malformed_urls_in_markup_degrade_to_empty():
    p = _parser()
    assert p.absolute_url("http://[broken/x.png") == ""

    threads = p.parse_threads('<div class="thread" data-id="5"><h2>t</h2><img src="http://[broken/x.png"></div>', "b")
    assert [t.id for t in threads] == ["5"]
    assert threads[0].image_url == ""

    detail = p.parse_thread(
        """
        <div class="thread" data-id="5">
          <div class="post op-post" data-id="5"><div class="thread-text">op</div><img src="http://[op/x.png"></div>
          <div class="post" data-id="6"><div class="post-text">reply</div><img data-src="http://[r/x.png"></div>
        </div>
        """,
        "b",
        "5",
    )
    assert detail.image_url == ""
    assert [(post.id, post.image_url) for post in detail.posts] == [("6", "")]


def test_search_result_with_malformed_link_gets_base_url():
    results = _parser().parse_search('<div class="search-result"><a href="http://[x"><h3>Odd</h3></a></div>')
    assert results[0].title == "Odd"
    assert results[0].url == "https://chan.test"


def test_oversized_reply_count_degrades_to_zero():
    html = f"""
    <div class="thread" data-id="8">
      <h2>Huge</h2>
      <span class="reply-count">{"9" * 5000} replies</span>
    </div>
    """
    threads = _parser().parse_threads(html, "b")
    assert threads[0].reply_count == 0
