"""
Portfolio CMS - View Binding Tests

Validates the binding contract and every concrete binding:
- Wholesale refresh, single-flight coalescing, late results after unmount
- Mutation pattern: notify + refresh on success, notify + untouched snapshot on failure
- Confirmation-gated deletes and blob handling
- Pure client-side filters (category, read state)
- Hero rotation, news ordering/truncation, settings fold and partial save
- Contact form and admin account creation
"""

import asyncio
from datetime import datetime, timezone

import pytest

from portfolio_cms.bindings.base import ActionStatus, Binding, always, never
from portfolio_cms.bindings.hero import HeroBinding, HeroManagementBinding
from portfolio_cms.bindings.messages import (
    ContactFormBinding,
    MessageFilter,
    MessagesBinding,
    filter_messages,
)
from portfolio_cms.bindings.news import NewsBinding, NewsManagementBinding, display_excerpt
from portfolio_cms.bindings.ordering import reorder_ids
from portfolio_cms.bindings.overview import OverviewBinding
from portfolio_cms.bindings.portfolio import (
    ALL_CATEGORIES,
    PortfolioBinding,
    PortfolioManagementBinding,
    categories_of,
)
from portfolio_cms.bindings.settings import SiteSettingsBinding, fold_settings, settings_form
from portfolio_cms.bindings.users import UserManagementBinding
from portfolio_cms.schemas import (
    DEFAULT_ABOUT_TEXT,
    DEFAULT_ARTIST_NAME,
    ContactDraft,
    Credentials,
    HeroImageDraft,
    NewsPost,
    NewsPostDraft,
    PortfolioItemDraft,
    SiteSettingsForm,
)
from portfolio_cms.services.blob_storage import blob_name_from_url
from portfolio_cms.services.content_store import (
    CONTACT_SUBMISSIONS,
    HERO_IMAGES,
    NEWS_POSTS,
    PORTFOLIO_ITEMS,
    SITE_SETTINGS,
    InMemoryContentStore,
    OrderBy,
)

HERO_BUCKET = "hero-images"
PORTFOLIO_BUCKET = "portfolio-media"


class HeroListBinding(Binding):
    """Minimal binding over every hero row, in display order."""

    collections = (HERO_IMAGES,)

    async def _fetch(self):
        return await self.store.query(HERO_IMAGES, order_by=OrderBy("display_order"))


class GatedStore(InMemoryContentStore):
    """Store whose queries wait for a gate after reading, to hold a fetch in flight."""

    def __init__(self, feed=None):
        super().__init__(feed)
        self.gate = None

    async def query(self, collection, filters=(), order_by=None, limit=None):
        result = await super().query(collection, filters, order_by, limit)
        if self.gate is not None:
            await self.gate.wait()
        return result


def _hero_admin(store, subscriptions, notifier, blobs):
    return HeroManagementBinding(store, subscriptions, notifier, blobs, bucket=HERO_BUCKET, optimize_images=False)


def _portfolio_admin(store, subscriptions, notifier, blobs):
    return PortfolioManagementBinding(
        store, subscriptions, notifier, blobs, bucket=PORTFOLIO_BUCKET, optimize_images=False
    )


def _blob_exists(blobs, bucket, url) -> bool:
    return blobs.exists(bucket, blob_name_from_url(url))


# ===========================================================================
# Binding contract
# ===========================================================================


class TestBindingContract:
    def test_initial_state_is_empty(self, store, subscriptions, notifier):
        binding = HeroListBinding(store, subscriptions, notifier)
        assert binding.snapshot == []
        assert not binding.loaded
        assert not binding.mounted

    def test_mount_loads_and_subscribes(self, store, subscriptions, notifier, add_hero):
        add_hero(0)

        async def scenario():
            binding = HeroListBinding(store, subscriptions, notifier)
            await binding.mount()
            return binding

        binding = asyncio.run(scenario())
        assert len(binding.snapshot) == 1
        assert binding.loaded
        assert binding.mounted
        assert subscriptions.is_watching(HERO_IMAGES)

    def test_change_event_triggers_refetch(self, store, subscriptions, notifier):
        async def scenario():
            binding = HeroListBinding(store, subscriptions, notifier)
            await binding.mount()
            await store.insert(HERO_IMAGES, {"image_url": "https://x/a.webp"})
            await subscriptions.flush()
            return binding

        binding = asyncio.run(scenario())
        assert len(binding.snapshot) == 1

    def test_unmount_releases_subscription(self, store, subscriptions, notifier):
        async def scenario():
            binding = HeroListBinding(store, subscriptions, notifier)
            await binding.mount()
            await binding.unmount()
            await store.insert(HERO_IMAGES, {"image_url": "https://x/a.webp"})
            await subscriptions.flush()
            return binding

        binding = asyncio.run(scenario())
        assert binding.snapshot == []
        assert not subscriptions.is_watching(HERO_IMAGES)

    def test_failed_refresh_keeps_snapshot(self, failing_store, subscriptions, notifier):
        failing_store.tables[HERO_IMAGES].append({
            "id": "h1", "image_url": "https://x/1.webp", "display_order": 0, "is_active": True,
        })

        async def scenario():
            binding = HeroListBinding(failing_store, subscriptions, notifier)
            await binding.mount()
            before = list(binding.snapshot)
            failing_store.fail_on[("query", HERO_IMAGES)] = 0
            failing_store.tables[HERO_IMAGES].clear()
            await binding.refresh()
            return before, binding.snapshot

        before, after = asyncio.run(scenario())
        assert len(before) == 1
        assert after == before

    def test_concurrent_refreshes_coalesce_into_one_trailing_fetch(self, subscriptions, notifier, feed):
        store = GatedStore(feed)

        async def scenario():
            binding = HeroListBinding(store, subscriptions, notifier)
            store.gate = asyncio.Event()
            first = asyncio.create_task(binding.refresh())
            while store.calls_to("query") == 0:
                await asyncio.sleep(0)

            # Written while the first fetch is in flight
            store.tables[HERO_IMAGES].append({"id": "late", "image_url": "u", "display_order": 0})
            others = [asyncio.create_task(binding.refresh()) for _ in range(3)]
            await asyncio.sleep(0)
            store.gate.set()
            results = await asyncio.gather(first, *others)
            return binding, results

        binding, results = asyncio.run(scenario())
        assert store.calls_to("query") == 2
        assert [row["id"] for row in binding.snapshot] == ["late"]
        assert all(result == binding.snapshot for result in results)

    def test_result_arriving_after_unmount_is_ignored(self, subscriptions, notifier, feed):
        store = GatedStore(feed)
        store.tables[HERO_IMAGES].append({"id": "h1", "image_url": "u", "display_order": 0})

        async def scenario():
            binding = HeroListBinding(store, subscriptions, notifier)
            store.gate = asyncio.Event()
            pending = asyncio.create_task(binding.mount())
            while store.calls_to("query") == 0:
                await asyncio.sleep(0)
            await binding.unmount()
            store.gate.set()
            await pending
            return binding

        binding = asyncio.run(scenario())
        assert binding.snapshot == []
        assert not binding.loaded


# ===========================================================================
# Hero
# ===========================================================================


class TestHeroBinding:
    def test_only_active_images_in_display_order(self, store, subscriptions, notifier, add_hero):
        add_hero(2)
        add_hero(0)
        add_hero(1, is_active=False)

        async def scenario():
            hero = HeroBinding(store, subscriptions, notifier, rotation_seconds=60)
            await hero.mount()
            await hero.unmount()
            return hero

        hero = asyncio.run(scenario())
        assert [image.id for image in hero.snapshot] == ["hero-2", "hero-1"]

    def test_advance_wraps_and_needs_two_images(self, store, subscriptions, notifier, add_hero):
        add_hero(0)

        async def scenario():
            hero = HeroBinding(store, subscriptions, notifier, rotation_seconds=60)
            await hero.refresh()
            single = hero.advance()
            add_hero(1)
            add_hero(2)
            await hero.refresh()
            return hero, single, [hero.advance() for _ in range(3)]

        hero, single, positions = asyncio.run(scenario())
        assert single == 0
        assert positions == [1, 2, 0]

    def test_index_resets_when_size_changes(self, store, subscriptions, notifier, add_hero):
        add_hero(0)
        add_hero(1)

        async def scenario():
            hero = HeroBinding(store, subscriptions, notifier, rotation_seconds=60)
            await hero.refresh()
            hero.advance()
            moved = hero.current_index
            add_hero(2)
            await hero.refresh()
            return moved, hero.current_index

        assert asyncio.run(scenario()) == (1, 0)

    def test_rotation_task_advances_index(self, store, subscriptions, notifier, add_hero):
        add_hero(0)
        add_hero(1)

        async def scenario():
            hero = HeroBinding(store, subscriptions, notifier, rotation_seconds=0.01)
            await hero.mount()
            seen = {hero.current_index}
            for _ in range(200):
                await asyncio.sleep(0.002)
                seen.add(hero.current_index)
                if len(seen) > 1:
                    break
            await hero.unmount()
            return seen

        assert asyncio.run(scenario()) == {0, 1}

    def test_inactive_upload_appears_after_toggle(self, store, subscriptions, notifier, blobs, add_hero):
        """Insert inactive, confirm it is hidden, toggle it active, see it last."""
        add_hero(0)
        add_hero(1)

        async def scenario():
            hero = HeroBinding(store, subscriptions, notifier, rotation_seconds=60)
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await hero.mount()
            await admin.mount()

            uploaded = await admin.upload("new.png", b"png-bytes", HeroImageDraft(title="New", is_active=False))
            await subscriptions.flush()
            hidden = [image.id for image in hero.snapshot]

            toggled = await admin.toggle_active(uploaded.data.id)
            await subscriptions.flush()
            await hero.refresh()
            shown = [image.id for image in hero.snapshot]

            await hero.unmount()
            await admin.unmount()
            return uploaded, hidden, toggled, shown

        uploaded, hidden, toggled, shown = asyncio.run(scenario())
        assert uploaded.ok
        assert uploaded.data.display_order == 2
        assert uploaded.data.id not in hidden
        assert toggled.ok
        assert shown == ["hero-1", "hero-2", uploaded.data.id]


class TestHeroManagement:
    def test_upload_requires_data(self, store, subscriptions, notifier, blobs):
        admin = _hero_admin(store, subscriptions, notifier, blobs)
        result = asyncio.run(admin.upload("empty.png", b"", HeroImageDraft()))
        assert result.status == ActionStatus.INVALID
        assert notifier.errors == ["Please choose an image to upload"]
        assert store.calls_to("insert") == 0

    def test_upload_stores_blob_and_row(self, store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return admin, await admin.upload("photo.png", b"png-bytes", HeroImageDraft(title="  Sunset "))

        admin, result = asyncio.run(scenario())
        assert result.ok
        assert result.data.title == "Sunset"
        assert result.data.image_url.startswith("https://storage.example.test/hero-images/")
        assert _blob_exists(blobs, HERO_BUCKET, result.data.image_url)
        assert [image.id for image in admin.snapshot] == [result.data.id]
        assert notifier.successes == ["Hero image uploaded successfully!"]

    def test_failed_insert_removes_uploaded_blob(self, failing_store, subscriptions, notifier, blobs):
        failing_store.fail_on[("insert", HERO_IMAGES)] = 0
        admin = _hero_admin(failing_store, subscriptions, notifier, blobs)

        result = asyncio.run(admin.upload("photo.png", b"png-bytes", HeroImageDraft()))

        assert result.status == ActionStatus.FAILED
        assert blobs.objects == {}
        assert notifier.errors == ["connection reset by peer"]

    def test_declined_delete_is_a_noop(self, store, subscriptions, notifier, blobs, add_hero):
        add_hero(0)

        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return admin, await admin.delete("hero-1", never)

        admin, result = asyncio.run(scenario())
        assert result.status == ActionStatus.CANCELLED
        assert store.calls_to("delete") == 0
        assert len(admin.snapshot) == 1
        assert notifier.notifications == []

    def test_async_confirmation_is_awaited(self, store, subscriptions, notifier, blobs, add_hero):
        add_hero(0)
        prompts = []

        async def ask(prompt):
            prompts.append(prompt)
            return True

        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return await admin.delete("hero-1", ask)

        result = asyncio.run(scenario())
        assert result.ok
        assert prompts == ["Are you sure you want to delete this image?"]

    def test_delete_removes_blob_then_row(self, store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            uploaded = await admin.upload("photo.png", b"png-bytes", HeroImageDraft())
            deleted = await admin.delete(uploaded.data.id, always)
            return admin, uploaded, deleted

        admin, uploaded, deleted = asyncio.run(scenario())
        assert deleted.ok
        assert admin.snapshot == []
        assert not _blob_exists(blobs, HERO_BUCKET, uploaded.data.image_url)
        assert notifier.successes[-1] == "Image deleted"

    def test_blob_failure_still_deletes_row(self, store, subscriptions, notifier, failing_blobs, add_hero):
        add_hero(0)

        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, failing_blobs)
            await admin.mount()
            return admin, await admin.delete("hero-1", always)

        admin, result = asyncio.run(scenario())
        assert result.ok
        assert admin.snapshot == []

    def test_row_failure_is_reported_after_blob_removal(self, failing_store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _hero_admin(failing_store, subscriptions, notifier, blobs)
            await admin.mount()
            uploaded = await admin.upload("photo.png", b"png-bytes", HeroImageDraft())
            failing_store.fail_on[("delete", HERO_IMAGES)] = 0
            notifier.clear()
            return admin, uploaded, await admin.delete(uploaded.data.id, always)

        admin, uploaded, result = asyncio.run(scenario())
        assert result.status == ActionStatus.FAILED
        assert notifier.errors == ["connection reset by peer"]
        assert [image.id for image in admin.snapshot] == [uploaded.data.id]
        assert not _blob_exists(blobs, HERO_BUCKET, uploaded.data.image_url)

    def test_toggle_missing_image_fails(self, store, subscriptions, notifier, blobs):
        admin = _hero_admin(store, subscriptions, notifier, blobs)
        result = asyncio.run(admin.toggle_active("missing"))
        assert result.status == ActionStatus.FAILED
        assert notifier.errors == ["Image not found"]

    def test_reorder(self, store, subscriptions, notifier, blobs, add_hero):
        add_hero(0)
        add_hero(1)
        add_hero(2)

        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return admin, await admin.reorder(["hero-3", "hero-1"])

        admin, result = asyncio.run(scenario())
        assert result.ok
        assert [image.id for image in admin.snapshot] == ["hero-3", "hero-1", "hero-2"]
        assert [image.display_order for image in admin.snapshot] == [0, 1, 2]

    def test_reorder_rejects_unknown_ids(self, store, subscriptions, notifier, blobs, add_hero):
        add_hero(0)

        async def scenario():
            admin = _hero_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return await admin.reorder(["hero-1", "ghost"])

        result = asyncio.run(scenario())
        assert result.status == ActionStatus.INVALID
        assert store.calls_to("update") == 0


class TestReorderIds:
    def test_requested_first_then_rest_in_order(self):
        assert reorder_ids(["a", "b", "c", "d"], ["c", "a"]) == ["c", "a", "b", "d"]

    def test_full_permutation(self):
        assert reorder_ids(["a", "b"], ["b", "a"]) == ["b", "a"]


# ===========================================================================
# Portfolio
# ===========================================================================


class TestPortfolioBinding:
    def test_categories_first_seen_with_all_prefix(self, store, subscriptions, notifier, add_portfolio_item):
        add_portfolio_item("digital", display_order=0)
        add_portfolio_item(None, display_order=1)
        add_portfolio_item("traditional", display_order=2)
        add_portfolio_item("digital", display_order=3)
        add_portfolio_item("hidden", display_order=4, is_published=False)

        portfolio = PortfolioBinding(store, subscriptions, notifier)
        asyncio.run(portfolio.refresh())

        assert portfolio.categories == [ALL_CATEGORIES, "digital", "traditional"]

    def test_category_filter_is_pure(self, store, subscriptions, notifier, add_portfolio_item):
        add_portfolio_item("digital", display_order=0)
        add_portfolio_item("traditional", display_order=1)
        add_portfolio_item("digital", display_order=2)

        portfolio = PortfolioBinding(store, subscriptions, notifier)
        asyncio.run(portfolio.refresh())
        calls_before = list(store.calls)

        digital = portfolio.items_in("digital")
        traditional = portfolio.items_in("traditional")
        everything = portfolio.items_in(ALL_CATEGORIES)

        assert store.calls == calls_before
        assert [item.id for item in digital] == ["item-1", "item-3"]
        assert [item.id for item in traditional] == ["item-2"]
        assert everything == portfolio.snapshot
        assert all(item in portfolio.snapshot for item in digital + traditional)

    def test_categories_of_empty(self):
        assert categories_of([]) == [ALL_CATEGORIES]


class TestPortfolioManagement:
    def test_create_with_thumbnail(self, store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _portfolio_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            return admin, await admin.create(
                PortfolioItemDraft(title="Song", media_type="music", category="audio"),
                "song.mp3", b"mp3-bytes",
                thumbnail_filename="cover.png", thumbnail_data=b"png-bytes",
            )

        admin, result = asyncio.run(scenario())
        assert result.ok
        item = result.data
        assert item.media_type == "music"
        assert item.thumbnail_url != item.media_url
        assert _blob_exists(blobs, PORTFOLIO_BUCKET, item.media_url)
        assert _blob_exists(blobs, PORTFOLIO_BUCKET, item.thumbnail_url)
        assert [i.id for i in admin.snapshot] == [item.id]

    def test_thumbnail_falls_back_to_media(self, store, subscriptions, notifier, blobs):
        admin = _portfolio_admin(store, subscriptions, notifier, blobs)
        result = asyncio.run(admin.create(PortfolioItemDraft(title="Sketch"), "sketch.png", b"png-bytes"))
        assert result.ok
        assert result.data.thumbnail_url == result.data.media_url
        assert result.data.preview_url == result.data.media_url

    @pytest.mark.parametrize(
        "draft, data, message",
        [
            (PortfolioItemDraft(title=" "), b"x", "Please enter a title"),
            (PortfolioItemDraft(title="T", media_type="pdf"), b"x", "Unsupported media type: pdf"),
            (PortfolioItemDraft(title="T"), b"", "Please choose a media file to upload"),
        ],
    )
    def test_validation_happens_before_any_remote_call(self, store, subscriptions, notifier, blobs, draft, data, message):
        admin = _portfolio_admin(store, subscriptions, notifier, blobs)
        result = asyncio.run(admin.create(draft, "file.png", data))
        assert result.status == ActionStatus.INVALID
        assert notifier.errors == [message]
        assert blobs.objects == {}
        assert store.calls == []

    def test_toggle_published_twice_restores_snapshot(self, store, subscriptions, notifier, blobs, add_portfolio_item):
        add_portfolio_item("digital", display_order=0)
        add_portfolio_item("digital", display_order=1, is_published=False)

        async def scenario():
            admin = _portfolio_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            original = list(admin.snapshot)
            await admin.toggle_published("item-2")
            middle = list(admin.snapshot)
            await admin.toggle_published("item-2")
            await admin.refresh()
            return original, middle, list(admin.snapshot)

        original, middle, final = asyncio.run(scenario())
        assert middle[1].is_published is True
        assert final == original

    def test_edit_replaces_media_and_removes_old_blob(self, store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _portfolio_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            created = await admin.create(PortfolioItemDraft(title="Old"), "old.png", b"old")
            edited = await admin.edit(
                created.data.id,
                PortfolioItemDraft(title="New", category="digital"),
                media_filename="new.png", media_data=b"new",
            )
            return created, edited

        created, edited = asyncio.run(scenario())
        assert edited.ok
        assert edited.data.title == "New"
        assert edited.data.category == "digital"
        assert not _blob_exists(blobs, PORTFOLIO_BUCKET, created.data.media_url)
        assert _blob_exists(blobs, PORTFOLIO_BUCKET, edited.data.media_url)

    def test_delete_removes_media_and_thumbnail(self, store, subscriptions, notifier, blobs):
        async def scenario():
            admin = _portfolio_admin(store, subscriptions, notifier, blobs)
            await admin.mount()
            created = await admin.create(
                PortfolioItemDraft(title="Clip", media_type="video"), "clip.mp4", b"mp4",
                thumbnail_filename="still.png", thumbnail_data=b"png",
            )
            deleted = await admin.delete(created.data.id, always)
            return admin, deleted

        admin, deleted = asyncio.run(scenario())
        assert deleted.ok
        assert blobs.objects == {}
        assert admin.snapshot == []
        assert notifier.successes[-1] == "Item deleted"


# ===========================================================================
# News
# ===========================================================================


class TestNewsBinding:
    def test_published_newest_first_capped_at_limit(self, store, subscriptions, notifier, add_news_post):
        for days_ago in (5, 1, 3, 1, 7, 0, 2, 9):
            add_news_post(days_ago=days_ago)
        add_news_post(days_ago=0, is_published=False)

        news = NewsBinding(store, subscriptions, notifier, limit=6)
        asyncio.run(news.refresh())

        ids = [post.id for post in news.snapshot]
        assert len(ids) == 6
        # post-2 and post-4 share a timestamp and keep fetch order
        assert ids == ["post-6", "post-2", "post-4", "post-7", "post-3", "post-1"]
        dates = [post.published_at for post in news.snapshot]
        assert dates == sorted(dates, reverse=True)

    def test_display_excerpt_prefers_excerpt(self):
        post = NewsPost(
            id="p", title="T", content="x" * 500, excerpt="Short",
            published_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        assert display_excerpt(post) == "Short"

    def test_display_excerpt_truncates_content(self):
        post = NewsPost(
            id="p", title="T", content="word " * 100,
            published_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        text = display_excerpt(post, length=20)
        assert text.endswith("…")
        assert len(text) <= 21

    def test_cards_carry_display_excerpt(self, store, subscriptions, notifier, add_news_post):
        add_news_post(content="Short content")
        news = NewsBinding(store, subscriptions, notifier)
        asyncio.run(news.refresh())
        assert [card.display_excerpt for card in news.cards()] == ["Short content"]


class TestNewsManagement:
    def test_create_appears_exactly_once(self, store, subscriptions, notifier):
        async def scenario():
            admin = NewsManagementBinding(store, subscriptions, notifier)
            await admin.mount()
            result = await admin.create(NewsPostDraft(title="Tour", content="Dates announced"))
            await subscriptions.flush()
            return admin, result

        admin, result = asyncio.run(scenario())
        assert result.ok
        assert [post.id for post in admin.snapshot] == [result.data["id"]]
        assert notifier.successes == ["Post created!"]

    def test_create_requires_title_and_content(self, store, subscriptions, notifier):
        admin = NewsManagementBinding(store, subscriptions, notifier)
        no_title = asyncio.run(admin.create(NewsPostDraft(content="x")))
        no_content = asyncio.run(admin.create(NewsPostDraft(title="x")))
        assert no_title.status == ActionStatus.INVALID
        assert no_content.status == ActionStatus.INVALID
        assert notifier.errors == ["Please enter a title", "Please enter some content"]
        assert store.calls == []

    def test_edit_is_full_replace(self, store, subscriptions, notifier, add_news_post):
        add_news_post(excerpt="Old excerpt", image_url="https://x/old.png")

        async def scenario():
            admin = NewsManagementBinding(store, subscriptions, notifier)
            await admin.mount()
            await admin.edit("post-1", NewsPostDraft(title="New", content="New content"))
            return admin.find("post-1")

        post = asyncio.run(scenario())
        assert post.title == "New"
        assert post.excerpt is None
        assert post.image_url is None

    def test_failed_update_leaves_snapshot(self, failing_store, subscriptions, notifier):
        failing_store.tables[NEWS_POSTS].append({
            "id": "p1", "title": "T", "content": "C", "excerpt": None, "image_url": None,
            "is_published": True, "published_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        })

        async def scenario():
            admin = NewsManagementBinding(failing_store, subscriptions, notifier)
            await admin.mount()
            before = list(admin.snapshot)
            failing_store.fail_on[("update", NEWS_POSTS)] = 0
            result = await admin.toggle_published("p1")
            return before, result, list(admin.snapshot)

        before, result, after = asyncio.run(scenario())
        assert result.status == ActionStatus.FAILED
        assert notifier.errors == ["Failed to update status"]
        assert after == before


# ===========================================================================
# Contact form & messages
# ===========================================================================


class TestContactAndMessages:
    def test_submission_reaches_inbox_as_unread(self, store, subscriptions, notifier):
        """Submit with an empty subject, then mark it read."""

        async def scenario():
            inbox = MessagesBinding(store, subscriptions, notifier)
            await inbox.mount()
            form = ContactFormBinding(store, notifier)
            sent = await form.submit(ContactDraft(
                name="Ada", email="ada@example.com", subject="", message="Love your work",
            ))
            await subscriptions.flush()
            unread_before = [m.id for m in inbox.messages_in(MessageFilter.UNREAD)]
            count_before = inbox.unread_count

            toggled = await inbox.toggle_read(sent.data.id)
            return inbox, sent, unread_before, count_before, toggled

        inbox, sent, unread_before, count_before, toggled = asyncio.run(scenario())
        assert sent.ok
        assert sent.message == ContactFormBinding.SENT
        assert sent.data.subject is None
        assert unread_before == [sent.data.id]
        assert count_before == 1
        assert toggled.ok
        assert inbox.messages_in(MessageFilter.UNREAD) == []
        assert [m.id for m in inbox.messages_in(MessageFilter.READ)] == [sent.data.id]
        assert len(inbox.snapshot) == 1
        assert inbox.unread_count == 0

    @pytest.mark.parametrize(
        "draft, message",
        [
            (ContactDraft(email="a@example.com", message="m"), "Please fill in your name"),
            (ContactDraft(name="A", message="m"), "Please fill in your email"),
            (ContactDraft(name="A", email="a@example.com"), "Please fill in your message"),
            (ContactDraft(name="A", email="not-an-email", message="m"), "Please enter a valid email address"),
        ],
    )
    def test_contact_validation(self, store, notifier, draft, message):
        result = asyncio.run(ContactFormBinding(store, notifier).submit(draft))
        assert result.status == ActionStatus.INVALID
        assert notifier.errors == [message]
        assert store.calls == []

    def test_contact_store_failure(self, failing_store, notifier):
        failing_store.fail_on[("insert", CONTACT_SUBMISSIONS)] = 0
        result = asyncio.run(ContactFormBinding(failing_store, notifier).submit(
            ContactDraft(name="A", email="a@example.com", message="m")
        ))
        assert result.status == ActionStatus.FAILED
        assert notifier.errors == [ContactFormBinding.NOT_SENT]

    def test_inbox_is_newest_first(self, store, subscriptions, notifier, add_message):
        add_message(minutes_ago=30)
        add_message(minutes_ago=5)
        add_message(minutes_ago=60)
        inbox = MessagesBinding(store, subscriptions, notifier)
        asyncio.run(inbox.refresh())
        assert [m.id for m in inbox.snapshot] == ["msg-2", "msg-1", "msg-3"]

    def test_read_filter_is_pure(self, store, subscriptions, notifier, add_message):
        add_message(is_read=False)
        add_message(is_read=True)
        add_message(is_read=False)
        inbox = MessagesBinding(store, subscriptions, notifier)
        asyncio.run(inbox.refresh())
        calls_before = list(store.calls)

        unread = inbox.messages_in(MessageFilter.UNREAD)
        read = inbox.messages_in(MessageFilter.READ)
        everything = filter_messages(inbox.snapshot, MessageFilter.ALL)

        assert store.calls == calls_before
        assert all(not m.is_read for m in unread)
        assert all(m.is_read for m in read)
        assert len(unread) + len(read) == len(everything) == 3

    def test_delete_message_requires_confirmation(self, store, subscriptions, notifier, add_message):
        add_message()

        async def scenario():
            inbox = MessagesBinding(store, subscriptions, notifier)
            await inbox.mount()
            declined = await inbox.delete("msg-1", never)
            accepted = await inbox.delete("msg-1", always)
            return inbox, declined, accepted

        inbox, declined, accepted = asyncio.run(scenario())
        assert declined.status == ActionStatus.CANCELLED
        assert accepted.ok
        assert inbox.snapshot == []


# ===========================================================================
# Settings
# ===========================================================================


class TestSiteSettings:
    def test_fold_uses_defaults_for_missing_and_empty(self):
        form = fold_settings([
            {"key": "artist_name", "value": "Nova"},
            {"key": "about_text", "value": ""},
            {"key": "unknown_key", "value": "ignored"},
        ])
        assert form.artist_name == "Nova"
        assert form.about_text == DEFAULT_ABOUT_TEXT
        assert form.social_instagram == ""

    def test_fold_of_nothing_is_all_defaults(self):
        assert fold_settings([]) == SiteSettingsForm()
        assert SiteSettingsForm().artist_name == DEFAULT_ARTIST_NAME

    def test_form_keeps_stored_empty_values(self):
        form = settings_form([
            {"key": "artist_name", "value": "Nova"},
            {"key": "about_text", "value": ""},
            {"key": "social_twitter", "value": None},
        ])
        assert form.artist_name == "Nova"
        assert form.about_text == ""
        assert form.social_twitter == ""
        assert form.social_instagram == ""
        assert settings_form([]) == SiteSettingsForm()

    def test_cleared_field_stays_cleared_in_form(self, store, subscriptions, notifier):
        async def scenario():
            binding = SiteSettingsBinding(store, subscriptions, notifier)
            await binding.mount()
            first = await binding.save(SiteSettingsForm(about_text=""))
            second = await binding.save()
            return binding, first, second

        binding, first, second = asyncio.run(scenario())
        assert first.ok and second.ok
        saved = {row["key"]: row["value"] for row in store.tables[SITE_SETTINGS]}
        assert saved["about_text"] == ""
        assert binding.form.about_text == ""
        assert binding.snapshot.about_text == DEFAULT_ABOUT_TEXT

    def test_remount_reads_form_from_stored_values(self, store, subscriptions, notifier):
        store.tables[SITE_SETTINGS].extend([
            {"id": "1", "key": "artist_name", "value": ""},
            {"id": "2", "key": "about_text", "value": "Painter"},
        ])

        binding = SiteSettingsBinding(store, subscriptions, notifier)
        asyncio.run(binding.mount())

        assert binding.form.artist_name == ""
        assert binding.form.about_text == "Painter"
        assert binding.snapshot.artist_name == DEFAULT_ARTIST_NAME

    def test_save_upserts_every_key(self, store, subscriptions, notifier):
        async def scenario():
            binding = SiteSettingsBinding(store, subscriptions, notifier)
            await binding.mount()
            return binding, await binding.save(SiteSettingsForm(artist_name="Nova", social_spotify="https://s"))

        binding, result = asyncio.run(scenario())
        assert result.ok
        assert store.calls_to("upsert", SITE_SETTINGS) == 6
        assert binding.snapshot.artist_name == "Nova"
        assert binding.form == binding.snapshot
        assert notifier.successes == ["Settings saved successfully!"]

    def test_partial_save_keeps_earlier_keys_and_attempted_form(self, failing_store, subscriptions, notifier):
        """The second of six upserts fails."""
        failing_store.fail_on[("upsert", SITE_SETTINGS)] = 2
        attempted = SiteSettingsForm(artist_name="New Name", about_text="New About", social_twitter="https://t")

        async def scenario():
            binding = SiteSettingsBinding(failing_store, subscriptions, notifier)
            await binding.mount()
            result = await binding.save(attempted)
            await subscriptions.flush()
            await binding.refresh()
            return binding, result

        binding, result = asyncio.run(scenario())
        assert result.status == ActionStatus.FAILED
        assert notifier.errors == ["connection reset by peer"]
        assert failing_store.calls_to("upsert", SITE_SETTINGS) == 2
        saved = {row["key"]: row["value"] for row in failing_store.tables[SITE_SETTINGS]}
        assert saved == {"artist_name": "New Name"}
        assert binding.snapshot.artist_name == "New Name"
        assert binding.snapshot.about_text == DEFAULT_ABOUT_TEXT
        assert binding.form == attempted


# ===========================================================================
# Overview
# ===========================================================================


class TestOverview:
    def test_counts(self, store, subscriptions, notifier, add_hero, add_portfolio_item, add_news_post, add_message):
        add_hero(0)
        add_hero(1, is_active=False)
        add_portfolio_item("digital")
        add_news_post()
        add_news_post(is_published=False)
        add_news_post()
        add_message(is_read=True)
        add_message(is_read=False)

        overview = OverviewBinding(store, subscriptions, notifier)
        asyncio.run(overview.refresh())

        stats = overview.snapshot
        assert (stats.hero_images, stats.portfolio_items, stats.news_posts) == (2, 1, 3)
        assert (stats.messages, stats.unread_messages) == (2, 1)
        assert store.calls_to("query") == 0

    def test_follows_changes_in_every_collection(self, store, subscriptions, notifier):
        async def scenario():
            overview = OverviewBinding(store, subscriptions, notifier)
            await overview.mount()
            await store.insert(PORTFOLIO_ITEMS, {"title": "T", "media_url": "https://x/a.png"})
            await store.insert(CONTACT_SUBMISSIONS, {"name": "A", "email": "a@example.com", "message": "m"})
            await subscriptions.flush()
            return overview.snapshot

        stats = asyncio.run(scenario())
        assert stats.portfolio_items == 1
        assert stats.unread_messages == 1


# ===========================================================================
# Admin accounts
# ===========================================================================


class TestUserManagement:
    def test_short_password_is_rejected_before_sign_up(self, auth, notifier, store):
        users = UserManagementBinding(auth, notifier, min_password_length=6)
        result = asyncio.run(users.create_admin(Credentials(email="a@example.com", password="12345")))
        assert result.status == ActionStatus.INVALID
        assert notifier.errors == ["Password must be at least 6 characters long"]
        assert store.calls == []

    def test_create_and_duplicate(self, auth, notifier):
        users = UserManagementBinding(auth, notifier)
        credentials = Credentials(email="admin@example.com", password="secret123")

        first = asyncio.run(users.create_admin(credentials))
        second = asyncio.run(users.create_admin(credentials))

        assert first.ok
        assert first.message == "Admin account created successfully!"
        assert first.data["email"] == "admin@example.com"
        assert second.status == ActionStatus.FAILED
        assert notifier.errors == ["User already registered"]
