"""Tests for the source adapters."""

import httpx
import pytest

from catalog_agent.core.defaults import create_collection
from catalog_agent.core.enums import CollectionType, ErrorKind, FetchKey, FieldKind, MessageLevel
from catalog_agent.core.schema import Field, Record
from catalog_agent.fetch.adapters import (
    ADAPTER_REGISTRY,
    BaseAdapter,
    IgdbAdapter,
    KinoAdapter,
    OmdbAdapter,
    OpenLibraryAdapter,
    get_adapter,
    get_adapter_info,
    list_adapters,
    register_adapter,
)
from catalog_agent.fetch.adapters.base import IMAGE_FAILED
from catalog_agent.fetch.adapters.igdb import lookup_tables
from catalog_agent.fetch.registry import SourceConfig
from catalog_agent.fetch.request import FetchRequest

IGDB_GAMES = [
    {
        "id": 1,
        "name": "Mario Kart World",
        "summary": "Race across a connected world.",
        "esrb": {"rating": 3},
        "pegi": {"rating": 1},
        "cover": {"url": "//images.igdb.com/igdb/image/upload/t_thumb/co1.jpg"},
        "genres": [10, 9999],
        "release_dates": [{"y": 2025, "platform": 508}, {"y": 2026, "platform": 6}],
        "publishers": [70],
        "developers": [70],
        "url": "https://www.igdb.com/games/mario-kart-world",
    },
    {
        "id": 2,
        "name": "Halo",
        "release_dates": [{"y": 2001, "platform": 11}],
    },
]

OMDB_SEARCH = {
    "Search": [
        {
            "Title": "Blade Runner",
            "Year": "1982",
            "imdbID": "tt0083658",
            "Type": "movie",
            "Poster": "https://m.media-amazon.com/images/blade-runner.jpg",
        },
        {
            "Title": "Blade Runner 2049",
            "Year": "2017",
            "imdbID": "tt1856101",
            "Type": "movie",
            "Poster": "N/A",
        },
    ],
    "totalResults": "2",
    "Response": "True",
}

OMDB_FULL = {
    "Title": "Blade Runner",
    "Year": "1982",
    "Rated": "R",
    "Runtime": "117 min",
    "Genre": "Action, Drama, Sci-Fi",
    "Director": "Ridley Scott",
    "Writer": "Hampton Fancher (screenplay), David Peoples (screenplay), Philip K. Dick (novel)",
    "Actors": "Harrison Ford, Rutger Hauer, Sean Young",
    "Plot": "A blade runner must pursue and terminate four replicants.",
    "Language": "English, German, Cantonese",
    "Country": "United States",
    "Awards": "Nominated for 2 Oscars",
    "Poster": "https://m.media-amazon.com/images/blade-runner.jpg",
    "imdbRating": "8.1",
    "imdbID": "tt0083658",
    "Production": "N/A",
    "Response": "True",
}

KINO_SEARCH = b"""
<html><body>
<div class="result">
  <a class="movie-link" href="/film/blade-runner-1982/">Blade Runner</a>
  <span class="movie-startdate">Kinostart: 14.10.1982</span>
  <span class="movie-genre">Genre: Science-Fiction, Thriller</span>
  <span class="movie-director">Von: Ridley Scott</span>
  <span class="movie-cast">Mit: Harrison Ford, Rutger Hauer und weiteren</span>
</div>
<div class="result">
  <a class="movie-link" href="/film/blade-runner-2049-2017/">Blade Runner 2049</a>
  <span class="movie-genre">Genre: Science-Fiction</span>
</div>
</body></html>
"""

KINO_DETAIL = b"""
<html><body>
<div class="movie-meta">
  <img src="/img/logo.png" alt="kino.de">
  <img src="/img/blade-runner-poster.jpg" alt="Blade Runner Poster">
</div>
<dl>
  <dt>Produktionsland</dt><dd>USA, Hongkong</dd>
  <dt>Dauer</dt><dd>117 Min.</dd>
  <dt>FSK</dt><dd>ab 16</dd>
  <dt>Filmverleih</dt><dd>Warner Bros.</dd>
</dl>
<div class="movie-plot-teaser">Handlung</div>
<p>Los Angeles, 2019.</p>
<p>Rick Deckard jagt Replikanten.</p>
<h2>Besetzung</h2>
<p>Not part of the plot</p>
</body></html>
"""

OPENLIBRARY_SEARCH = {
    "numFound": 1,
    "docs": [
        {
            "key": "/works/OL893415W",
            "title": "Dune",
            "author_name": ["Frank Herbert"],
            "publisher": ["Chilton Books", "Ace"],
            "first_publish_year": 1965,
            "isbn": ["0441013597", "9780441013593"],
            "lccn": ["65022374"],
            "number_of_pages_median": 412,
            "language": ["eng"],
            "subject": ["Science fiction", "Dune (Imaginary place)"],
            "cover_i": 12345,
        },
        {"key": "/works/OL0W"},
    ],
}


async def run(job):
    await job.wait()
    return job


class TestAdapterRegistry:
    """Tests for the adapter registry functions."""

    def test_list_adapters(self) -> None:
        """Test listing built-in adapters."""
        assert set(list_adapters()) >= {"igdb", "kino", "omdb", "openlibrary"}

    def test_get_adapter(self) -> None:
        """Test creating adapters by name."""
        adapter = get_adapter("omdb", SourceConfig(name="movies", adapter="omdb"))
        assert isinstance(adapter, OmdbAdapter)
        assert adapter.name == "movies"
        assert get_adapter("missing") is None

    def test_get_adapter_info(self) -> None:
        """Test adapter info."""
        info = get_adapter_info("openlibrary")
        assert info is not None
        assert info["class"] == "OpenLibraryAdapter"
        assert info["types"] == "book, comic_book"
        assert get_adapter_info("missing") is None

    def test_register_adapter(self) -> None:
        """Test registering a custom adapter."""
        register_adapter("kino-copy", KinoAdapter)
        try:
            assert isinstance(get_adapter("kino-copy"), KinoAdapter)
        finally:
            ADAPTER_REGISTRY.pop("kino-copy")

        with pytest.raises(TypeError):
            register_adapter("bad", dict)  # type: ignore[arg-type]


class TestBaseAdapter:
    """Tests for shared adapter behavior."""

    def test_capabilities(self) -> None:
        """Test can_search and can_fetch."""
        adapter = OpenLibraryAdapter()
        assert adapter.can_search(FetchKey.PERSON)
        assert not adapter.can_search(FetchKey.RAW)
        assert not adapter.can_search(None)
        assert adapter.can_fetch(CollectionType.COMIC_BOOK)
        assert not adapter.can_fetch(CollectionType.VIDEO)
        assert isinstance(adapter, BaseAdapter)

    def test_selected_optional_fields(self) -> None:
        """Test optional field selection from request or source defaults."""
        source = SourceConfig(name="omdb", adapter="omdb", optional_fields=["imdb", "bogus"])
        adapter = OmdbAdapter(source)
        request = FetchRequest(FetchKey.TITLE, "Alien", CollectionType.VIDEO)

        assert adapter.selected_optional_fields(request) == ["imdb"]
        assert adapter.selected_optional_fields(request.with_optional_fields(["awards"])) == ["awards"]
        assert adapter.selected_optional_fields(request.with_optional_fields([])) == []

        collection = adapter.new_collection(request.with_optional_fields(["imdb", "awards"]))
        assert collection.has_field("imdb")
        assert collection.has_field("awards")

    def test_warn_outside_job(self) -> None:
        """Test that warnings outside a job go to the listeners."""
        adapter = KinoAdapter()
        messages = []
        adapter.add_message_listener(messages.append)
        adapter.warn("careful")
        assert messages[0].text == "careful"
        assert messages[0].kind == ErrorKind.PARTIAL
        assert messages[0].source == "kino"

    @pytest.mark.asyncio
    async def test_unsupported_key_is_contract_error(self, make_downloader) -> None:
        """Test that an unsupported key ends the job with a contract message."""
        calls = []
        adapter = KinoAdapter(downloader=make_downloader(lambda r: calls.append(r) or httpx.Response(200)))
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "alien", CollectionType.VIDEO)))

        assert job.results == []
        assert job.messages[0].kind == ErrorKind.CONTRACT
        assert calls == []

    @pytest.mark.asyncio
    async def test_register_image_without_registrar(self) -> None:
        """Test that images are skipped when no registrar is configured."""
        adapter = KinoAdapter()
        assert await adapter.register_image("https://img.example/a.jpg") == ""


class TestIgdbAdapter:
    """Tests for the IGDB adapter."""

    @pytest.fixture
    def source(self) -> SourceConfig:
        """Create an IGDB source with credentials."""
        return SourceConfig(
            name="igdb",
            adapter="igdb",
            optional_fields=["pegi", "igdb"],
            custom_config={"Client ID": "client", "API Key": "token"},
        )

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    @pytest.fixture
    def adapter(self, source, requests, make_downloader, registrar) -> IgdbAdapter:
        """Create an IGDB adapter with a mock API."""
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path == "/v4/games/":
                return httpx.Response(200, json=IGDB_GAMES)
            if request.url.path == "/v4/companies/70":
                return httpx.Response(200, json=[{"id": 70, "name": "Nintendo"}])
            return httpx.Response(404)

        return IgdbAdapter(source, downloader=make_downloader(handler), image_registrar=registrar)

    def test_lookup_tables_built_once(self) -> None:
        """Test that the code tables are shared and read-only."""
        tables = lookup_tables()
        assert lookup_tables() is tables
        assert tables.esrb["7"] == "Adults Only"
        assert tables.esrb["1"] == "Pending"
        with pytest.raises(TypeError):
            tables.genres[1] = "x"  # type: ignore[index]

    @pytest.mark.asyncio
    async def test_search(self, adapter: IgdbAdapter, requests) -> None:
        """Test a keyword search."""
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "mario kart", CollectionType.GAME)))

        assert [r.title for r in job.results] == ["Mario Kart World", "Halo"]
        record = job.results[0].record
        assert record.frozen
        assert record.field("certification") == "Everyone"
        assert record.field("genre") == "Racing"
        assert record.field("year") == "2025"
        assert record.field("pegi") == "PEGI 3"
        assert record.field("igdb") == "https://www.igdb.com/games/mario-kart-world"
        assert record.field("cover") == "https://images.igdb.com/igdb/image/upload/t_thumb/co1.jpg"
        assert job.results[1].record.field("platform") == "Xbox"

        sent = requests[0]
        assert sent.url.params["search"] == "mario kart"
        assert sent.headers["Client-ID"] == "client"
        assert sent.headers["Authorization"] == "Bearer token"

    @pytest.mark.asyncio
    async def test_unknown_platform_extends_choices(self, adapter: IgdbAdapter) -> None:
        """Test that "Nintendo Switch 2" is added to the platform choices."""
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "mario kart", CollectionType.GAME)))

        record = job.results[0].record
        assert record.field("platform") == "Nintendo Switch 2"
        assert "Nintendo Switch 2" in record.collection.field_by_name("platform").allowed

    @pytest.mark.asyncio
    async def test_resolve(self, adapter: IgdbAdapter, requests, registrar) -> None:
        """Test resolving company names and the cover image."""
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "mario kart", CollectionType.GAME)))
        partial = job.results[0]

        resolve = await run(adapter.resolve_full(partial.uid))
        record = resolve.record
        assert record is not None
        assert record.id == partial.record.id
        assert resolve.results[0].uid == partial.uid
        assert record.field("publisher") == "Nintendo"
        assert record.field("developer") == "Nintendo"
        assert record.field("cover") == "image-1.jpg"
        assert registrar.urls == ["https://images.igdb.com/igdb/image/upload/t_thumb/co1.jpg"]

        # Company 70 is looked up once
        company_calls = [r for r in requests if r.url.path.startswith("/v4/companies/")]
        assert len(company_calls) == 1
        # The search result is not modified
        assert partial.record.field("publisher") == ""

    @pytest.mark.asyncio
    async def test_missing_api_key(self, make_downloader) -> None:
        """Test that a missing key fails before any network call."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[])

        adapter = IgdbAdapter(
            SourceConfig(name="igdb", adapter="igdb", custom_config={"Client ID": "client"}),
            downloader=make_downloader(handler),
        )
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "halo", CollectionType.GAME)))

        assert job.results == []
        assert calls == []
        assert len(job.messages) == 1
        assert job.messages[0].kind == ErrorKind.CONFIGURATION
        assert job.messages[0].level == MessageLevel.ERROR
        assert "API Key" in job.messages[0].text

    @pytest.mark.asyncio
    async def test_bad_response(self, source, make_downloader) -> None:
        """Test that a non-list body is a parse failure."""
        adapter = IgdbAdapter(source, downloader=make_downloader(lambda r: httpx.Response(200, json={"message": "x"})))
        job = await run(adapter.search(FetchRequest(FetchKey.KEYWORD, "halo", CollectionType.GAME)))
        assert job.results == []
        assert job.messages[0].kind == ErrorKind.PARSE

    def test_update_request(self, adapter: IgdbAdapter) -> None:
        """Test that updates search by keyword on the title."""
        record = Record(create_collection(CollectionType.GAME))
        assert adapter.update_request(record).is_empty
        record.set_field("title", "Halo")
        request = adapter.update_request(record)
        assert request.key == FetchKey.KEYWORD
        assert request.value == "Halo"


class TestOmdbAdapter:
    """Tests for the OMDb adapter."""

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    @pytest.fixture
    def adapter(self, requests, make_downloader, registrar) -> OmdbAdapter:
        """Create an OMDb adapter with a mock API."""
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            params = request.url.params
            if params.get("apikey") != "good":
                return httpx.Response(401, json={"Response": "False", "Error": "Invalid API key!"})
            if "s" in params:
                if params["s"] == "nothing":
                    return httpx.Response(200, json={"Response": "False", "Error": "Movie not found!"})
                return httpx.Response(200, json=OMDB_SEARCH)
            if params.get("i") == "tt0083658":
                return httpx.Response(200, json=OMDB_FULL)
            return httpx.Response(200, json={"Response": "False", "Error": "Incorrect IMDb ID."})

        return OmdbAdapter(
            SourceConfig(name="omdb", adapter="omdb", custom_config={"API Key": "good"}),
            downloader=make_downloader(handler),
            image_registrar=registrar,
        )

    @pytest.mark.asyncio
    async def test_title_search(self, adapter: OmdbAdapter, requests) -> None:
        """Test a title search returning partial records."""
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO)))

        assert [r.title for r in job.results] == ["Blade Runner", "Blade Runner 2049"]
        assert job.results[0].record.field("year") == "1982"
        assert job.results[1].record.field("cover") == ""
        assert requests[0].url.params["s"] == "Blade Runner"

    @pytest.mark.asyncio
    async def test_resolve_makes_second_request(self, adapter: OmdbAdapter, requests, registrar) -> None:
        """Test that resolving fetches the full record by IMDb id."""
        request = FetchRequest(
            FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO, optional_fields=("imdb", "imdb-rating")
        )
        job = await run(adapter.search(request))
        resolve = await run(adapter.resolve_full(job.results[0].uid))
        record = resolve.record

        assert requests[-1].url.params["i"] == "tt0083658"
        assert record.field("certification") == "R (USA)"
        assert record.field("running-time") == "117"
        assert record.field("genre") == "Action; Drama; Sci-Fi"
        assert record.field("writer") == "Hampton Fancher; David Peoples; Philip K. Dick"
        assert record.field("cast") == "Harrison Ford; Rutger Hauer; Sean Young"
        assert record.field("nationality") == "United States"
        assert record.field("studio") == ""
        assert record.field("imdb") == "https://www.imdb.com/title/tt0083658/"
        assert record.field("imdb-rating") == "8.1"
        assert record.field("cover") == "image-1.jpg"
        assert "awards" not in record.fields()

    @pytest.mark.asyncio
    async def test_identifier_search_is_complete(self, adapter: OmdbAdapter, requests) -> None:
        """Test that an IMDb id search returns the full record without a second request."""
        job = await run(adapter.search(FetchRequest(FetchKey.IDENTIFIER, "tt0083658", CollectionType.VIDEO)))
        assert len(job.results) == 1
        assert job.results[0].record.field("director") == "Ridley Scott"

        await run(adapter.resolve_full(job.results[0].uid))
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_not_found(self, adapter: OmdbAdapter) -> None:
        """Test that "not found" means zero results and no warning."""
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "nothing", CollectionType.VIDEO)))
        assert job.results == []
        assert job.messages == []

    @pytest.mark.asyncio
    async def test_rejected_key(self, make_downloader) -> None:
        """Test that a rejected API key is a configuration error."""
        adapter = OmdbAdapter(
            SourceConfig(name="omdb", adapter="omdb", custom_config={"API Key": "bad"}),
            downloader=make_downloader(
                lambda r: httpx.Response(200, json={"Response": "False", "Error": "Invalid API key!"})
            ),
        )
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Alien", CollectionType.VIDEO)))
        assert job.results == []
        assert job.messages[0].kind == ErrorKind.CONFIGURATION

    @pytest.mark.asyncio
    async def test_http_error(self, adapter: OmdbAdapter) -> None:
        """Test that an HTTP failure is a transport warning."""
        adapter.config["API Key"] = "expired"
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Alien", CollectionType.VIDEO)))
        assert job.results == []
        assert job.messages[0].kind == ErrorKind.TRANSPORT
        assert job.messages[0].level == MessageLevel.WARNING

    @pytest.mark.asyncio
    async def test_image_failure_is_partial(self, adapter: OmdbAdapter, registrar) -> None:
        """Test that a failed cover leaves the field empty with a warning."""
        full = dict(OMDB_FULL, Poster="https://img.example/broken.jpg")
        adapter.downloader.transport = httpx.MockTransport(lambda r: httpx.Response(200, json=full))

        job = await run(adapter.search(FetchRequest(FetchKey.IDENTIFIER, "tt0083658", CollectionType.VIDEO)))
        resolve = await run(adapter.resolve_full(job.results[0].uid))

        assert resolve.record.field("cover") == ""
        assert resolve.record.field("title") == "Blade Runner"
        assert [m.text for m in resolve.messages] == [IMAGE_FAILED]
        assert resolve.messages[0].kind == ErrorKind.PARTIAL

    def test_update_request_prefers_imdb_id(self, adapter: OmdbAdapter) -> None:
        """Test update request derivation."""
        collection = create_collection(CollectionType.VIDEO)
        collection.schema.add_field(Field(name="imdb", kind=FieldKind.URL))
        record = Record(collection)
        record.set_field("title", "Blade Runner")
        assert adapter.update_request(record) == FetchRequest(FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO)

        record.set_field("imdb", "https://www.imdb.com/title/tt0083658/")
        assert adapter.update_request(record) == FetchRequest(FetchKey.IDENTIFIER, "tt0083658", CollectionType.VIDEO)


class TestKinoAdapter:
    """Tests for the kino.de adapter."""

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    @pytest.fixture
    def handler(self, requests):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url.path.startswith("/se/"):
                return httpx.Response(200, content=KINO_SEARCH, headers={"content-type": "text/html"})
            if request.url.path == "/film/blade-runner-1982/":
                return httpx.Response(200, content=KINO_DETAIL, headers={"content-type": "text/html"})
            return httpx.Response(404)

        return handler

    @pytest.mark.asyncio
    async def test_search(self, handler, requests, make_downloader) -> None:
        """Test parsing the search page."""
        adapter = KinoAdapter(downloader=make_downloader(handler))
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO)))

        assert [r.title for r in job.results] == ["Blade Runner", "Blade Runner 2049"]
        first = job.results[0].record
        assert first.field("year") == "1982"
        assert first.field("genre") == "Science-Fiction; Thriller"
        assert first.field("director") == "Ridley Scott"
        assert first.field("cast") == "Harrison Ford; Rutger Hauer"

        second = job.results[1].record
        assert second.field("year") == "2017"
        assert second.field("director") == ""

        assert requests[0].url.params["sp_search_filter"] == "movie"

    @pytest.mark.asyncio
    async def test_resolve(self, handler, make_downloader, registrar) -> None:
        """Test parsing the movie page."""
        adapter = KinoAdapter(downloader=make_downloader(handler), image_registrar=registrar)
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO)))
        record = (await run(adapter.resolve_full(job.results[0].uid))).record

        assert record.field("nationality") == "USA; Hongkong"
        assert record.field("running-time") == "117"
        assert record.field("certification") == "FSK 16 (DE)"
        assert "FSK 0 (DE)" in record.collection.field_by_name("certification").allowed
        assert record.field("studio") == "Warner Bros."
        assert record.field("plot") == "Los Angeles, 2019.\n\nRick Deckard jagt Replikanten."
        assert record.field("cover") == "image-1.jpg"
        assert registrar.urls == ["https://www.kino.de/img/blade-runner-poster.jpg"]

    @pytest.mark.asyncio
    async def test_resolve_without_registrar_keeps_url(self, handler, make_downloader) -> None:
        """Test that the poster URL is kept when images are not registered."""
        adapter = KinoAdapter(downloader=make_downloader(handler))
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Blade Runner", CollectionType.VIDEO)))
        record = (await run(adapter.resolve_full(job.results[0].uid))).record
        assert record.field("cover") == "https://www.kino.de/img/blade-runner-poster.jpg"

    @pytest.mark.asyncio
    async def test_empty_page(self, make_downloader) -> None:
        """Test that an empty page is a parse failure."""
        adapter = KinoAdapter(downloader=make_downloader(lambda r: httpx.Response(200, content=b"")))
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "x", CollectionType.VIDEO)))
        assert job.results == []
        assert job.messages[0].kind == ErrorKind.PARSE


class TestOpenLibraryAdapter:
    """Tests for the Open Library adapter."""

    @pytest.fixture
    def requests(self) -> list[httpx.Request]:
        return []

    @pytest.fixture
    def adapter(self, requests, make_downloader) -> OpenLibraryAdapter:
        """Create an Open Library adapter with a mock API."""
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=OPENLIBRARY_SEARCH)

        return OpenLibraryAdapter(
            SourceConfig(name="openlibrary", adapter="openlibrary", optional_fields=["openlibrary"]),
            downloader=make_downloader(handler),
        )

    @pytest.mark.asyncio
    async def test_search(self, adapter: OpenLibraryAdapter, requests) -> None:
        """Test a title search; documents without a title are skipped."""
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Dune", CollectionType.BOOK)))

        assert len(job.results) == 1
        record = job.results[0].record
        assert record.field("author") == "Frank Herbert"
        assert record.field("publisher") == "Chilton Books"
        assert record.field("pub_year") == "1965"
        assert record.field("isbn") == "9780441013593; 0441013597"
        assert record.field("lccn") == "65022374"
        assert record.field("pages") == "412"
        assert record.field("language") == "English"
        assert record.field("cover") == "https://covers.openlibrary.org/b/id/12345-L.jpg"
        assert record.field("openlibrary") == "https://openlibrary.org/works/OL893415W"

        assert requests[0].url.path == "/search.json"
        assert requests[0].url.params["title"] == "Dune"
        assert requests[0].url.params["limit"] == "20"

    @pytest.mark.asyncio
    async def test_comic_book_uses_writer(self, adapter: OpenLibraryAdapter) -> None:
        """Test that comic book authors are writers."""
        job = await run(adapter.search(FetchRequest(FetchKey.PERSON, "Frank Herbert", CollectionType.COMIC_BOOK)))
        assert job.results[0].record.field("writer") == "Frank Herbert"

    @pytest.mark.parametrize(
        "value,param",
        [
            ("978-0-441-01359-3", "isbn"),
            ("0441013597", "isbn"),
            ("65022374", "lccn"),
        ],
    )
    def test_identifier_params(self, adapter: OpenLibraryAdapter, value: str, param: str) -> None:
        """Test ISBN/LCCN detection for identifier searches."""
        request = adapter.build_search(FetchRequest(FetchKey.IDENTIFIER, value, CollectionType.BOOK))
        assert param in request.params

    def test_keyword_params(self, adapter: OpenLibraryAdapter) -> None:
        """Test free-text search."""
        request = adapter.build_search(FetchRequest(FetchKey.KEYWORD, "sand worms", CollectionType.BOOK))
        assert request.params["q"] == "sand worms"

    @pytest.mark.asyncio
    async def test_unexpected_body(self, make_downloader) -> None:
        """Test that a body without docs is a parse failure."""
        adapter = OpenLibraryAdapter(downloader=make_downloader(lambda r: httpx.Response(200, json={"error": "x"})))
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Dune", CollectionType.BOOK)))
        assert job.results == []
        assert job.messages[0].kind == ErrorKind.PARSE

    @pytest.mark.asyncio
    async def test_update_request_prefers_isbn(self, adapter: OpenLibraryAdapter) -> None:
        """Test update request derivation from a fetched record."""
        job = await run(adapter.search(FetchRequest(FetchKey.TITLE, "Dune", CollectionType.BOOK)))
        request = adapter.update_request(job.results[0].record)
        assert request == FetchRequest(FetchKey.IDENTIFIER, "9780441013593", CollectionType.BOOK)
