"""
HTTP Link Fetcher Tests
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from sitemapper.crawler.fetcher import HttpLinkFetcher, FetchError


async def iter_chunks(data, size):
    for start in range(0, len(data), size):
        yield data[start:start + size]


def mock_session(status=200, content_type='text/html; charset=utf-8', body='', url='https://ex.com/',
                 headers=None):
    response = MagicMock()
    response.status = status
    response.headers = {'content-type': content_type, **(headers or {})}
    response.url = url
    response.charset = 'utf-8'
    response.content.iter_chunked = lambda size: iter_chunks(body.encode('utf-8'), size)

    session = MagicMock()
    session.get.return_value.__aenter__.return_value = response
    session.get.return_value.__aexit__.return_value = False
    session.close = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_extracts_links_from_html():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    fetcher.session = mock_session(body='<a href="/a">A</a><a href="https://ex.com/b">B</a>')

    links = await fetcher.fetch('https://ex.com/', 5000)

    assert links == ['https://ex.com/a', 'https://ex.com/b']
    _, kwargs = fetcher.session.get.call_args
    assert kwargs['timeout'].total == 5


@pytest.mark.asyncio
async def test_resolves_against_final_url():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    fetcher.session = mock_session(body='<a href="next">N</a>', url='https://ex.com/moved/')

    assert await fetcher.fetch('https://ex.com/old', 5000) == ['https://ex.com/moved/next']


@pytest.mark.asyncio
async def test_error_status_raises_fetch_error():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    fetcher.session = mock_session(status=404)

    with pytest.raises(FetchError):
        await fetcher.fetch('https://ex.com/missing', 5000)


@pytest.mark.asyncio
async def test_non_html_has_no_links():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    fetcher.session = mock_session(content_type='application/pdf', body='<a href="/a">A</a>')

    assert await fetcher.fetch('https://ex.com/file.pdf', 5000) == []


@pytest.mark.asyncio
async def test_oversized_content_raises_fetch_error():
    fetcher = HttpLinkFetcher(user_agent='test-agent', max_content_size=10)
    fetcher.session = mock_session(headers={'content-length': '1000'})

    with pytest.raises(FetchError):
        await fetcher.fetch('https://ex.com/huge', 5000)


@pytest.mark.asyncio
async def test_oversized_body_without_length_header_raises_fetch_error():
    fetcher = HttpLinkFetcher(user_agent='test-agent', max_content_size=100)
    fetcher.session = mock_session(body='<a href="/a">A</a>' * 1000)

    with pytest.raises(FetchError):
        await fetcher.fetch('https://ex.com/chunked', 5000)


@pytest.mark.asyncio
async def test_body_read_across_chunks():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    filler = '<p>' + 'x' * 20000 + '</p>'
    fetcher.session = mock_session(body=filler + '<a href="/late">L</a>')

    assert await fetcher.fetch('https://ex.com/', 5000) == ['https://ex.com/late']


@pytest.mark.asyncio
async def test_client_error_raises_fetch_error():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    fetcher.session = MagicMock()
    fetcher.session.get.side_effect = aiohttp.ClientConnectionError("connection refused")

    with pytest.raises(FetchError):
        await fetcher.fetch('https://ex.com/', 5000)


@pytest.mark.asyncio
async def test_close_releases_session():
    fetcher = HttpLinkFetcher(user_agent='test-agent')
    session = mock_session()
    fetcher.session = session

    await fetcher.close()

    session.close.assert_awaited_once()
    assert fetcher.session is None
