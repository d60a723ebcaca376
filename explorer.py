#!/usr/bin/env python3
"""Bookshelf CLI - search the catalog, keep reading lists and reviews."""
import argparse
import asyncio
import getpass
import sys
import json
from tabulate import tabulate
from bookshelf.client import OpenLibraryClient, RetryPolicy
from bookshelf.async_client import AsyncOpenLibraryClient
from bookshelf.database import FileStorage, PostgresStorage
from bookshelf.errors import BookshelfError, Unauthenticated
from bookshelf.gateway import BackendGateway
from bookshelf.models import ListStatus
from bookshelf.parse import borrow_links
from bookshelf.reconcile import average_rating, merge_reviews, reviews_for_display
from bookshelf.store import LocalListStore, SessionStore
from bookshelf.config import Config
import logging

logger = logging.getLogger(__name__)

STATUS_CHOICES = [s.value for s in ListStatus]


def setup_storage(config: Config):
    """Open the configured device storage."""
    if config.BOOKSHELF_STORAGE == "postgres":
        storage = PostgresStorage(config.DATABASE_URL)
        storage.init_schema()
        return storage
    return FileStorage(config.BOOKSHELF_DATA_DIR)


def retry_policy(config: Config) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=max(config.DEFAULT_MAX_RETRIES, 1),
        timeout=config.DEFAULT_TIMEOUT
    )


def notify_failure(error: BookshelfError):
    """Show a failure the way the user should read it."""
    print(f"Error: {error.user_message}", file=sys.stderr)


def require_login(sessions: SessionStore):
    auth = sessions.load()
    if auth is None:
        raise Unauthenticated()
    return auth


def current_owner(sessions: SessionStore):
    auth = sessions.load()
    return auth.owner_id if auth else None


async def _search_async(title: str, config: Config):
    async with AsyncOpenLibraryClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        retry=retry_policy(config)
    ) as client:
        return await client.search_books(title)


async def _sample_async(subjects, limit: int, config: Config):
    async with AsyncOpenLibraryClient(
        base_url=config.OPENLIBRARY_BASE_URL,
        retry=retry_policy(config)
    ) as client:
        if len(subjects) == 1:
            return await client.sample_books(subjects[0], limit)
        sampled = await client.sample_many(subjects, limit)
        return [book for subject in subjects for book in sampled[subject]]


def search_catalog(title: str, config: Config, use_async: bool = False):
    """Search by title and return normalized records."""
    logger.info(f"Searching for: {title}")
    if use_async:
        return asyncio.run(_search_async(title, config))
    with OpenLibraryClient(config.OPENLIBRARY_BASE_URL, retry_policy(config)) as client:
        return client.search_books(title)


def sample_catalog(subjects, limit: int, config: Config, use_async: bool = False):
    """Random works from one or more subjects."""
    logger.info(f"Sampling {', '.join(subjects)} (limit={limit})")
    if use_async or len(subjects) > 1:
        return asyncio.run(_sample_async(subjects, limit, config))
    with OpenLibraryClient(config.OPENLIBRARY_BASE_URL, retry_policy(config)) as client:
        return client.sample_books(subjects[0], limit)


def pick_book(books, pick: int):
    if not 1 <= pick <= len(books):
        raise BookshelfError(f"Pick a result between 1 and {len(books)}.")
    return books[pick - 1]


def _clip(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def display_books(books, format_type: str):
    """Display books in specified format."""
    if format_type == "table":
        headers = ["#", "Title", "Author", "Genre", "Year", "ISBN"]
        rows = [
            [
                i,
                _clip(book.title, 50),
                _clip(book.author, 30),
                _clip(book.genre, 20),
                book.publication_year or "N/A",
                book.isbn or "N/A"
            ]
            for i, book in enumerate(books, 1)
        ]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))

    elif format_type == "json":
        print(json.dumps([book.to_dict() for book in books], indent=2))

    elif format_type == "compact":
        for i, book in enumerate(books, 1):
            print(f"{i}. {book.title} - {book.author}")


def display_entries(entries, store: LocalListStore, format_type: str):
    """Display saved list entries with their review average."""
    if format_type == "json":
        print(json.dumps([entry.to_dict() for entry in entries], indent=2))
        return

    rows = []
    for entry in entries:
        rating = average_rating(reviews_for_display(entry, store))
        rows.append([
            _clip(entry.title, 50),
            _clip(entry.author, 30),
            entry.status.value,
            f"{rating}/5" if rating is not None else "N/A",
            entry.date_added.strftime("%Y-%m-%d") if entry.date_added else "",
            entry.external_id or ""
        ])

    if format_type == "compact":
        for row in rows:
            print(f"[{row[2]}] {row[0]} - {row[1]}")
    else:
        headers = ["Title", "Author", "List", "Rating", "Added", "ID"]
        print("\n" + tabulate(rows, headers=headers, tablefmt="grid"))


def display_reviews(reviews):
    if not reviews:
        print("No reviews yet.")
        return
    for review in reviews:
        print(f"Rating: {review.rating}/5")
        print(f"  {review.comment}")
        print(f"  Posted on {review.date.strftime('%Y-%m-%d')}")


def cmd_search(args, config, store, sessions):
    display_books(search_catalog(args.title, config, args.use_async), args.format)


def cmd_discover(args, config, store, sessions):
    subjects = args.subject or [config.DISCOVER_SUBJECT]
    books = sample_catalog(subjects, args.limit or config.DISCOVER_LIMIT, config, args.use_async)
    display_books(books, args.format)


def cmd_add(args, config, store, sessions):
    # Check login before touching the network
    owner_id = current_owner(sessions)
    if owner_id is None:
        raise Unauthenticated("Please log in to add books to your list.")
    book = pick_book(search_catalog(args.title, config), args.pick)
    store.upsert_list_entry(book, owner_id, args.status)
    print(f"Book added to {args.status} list!")


def cmd_list(args, config, store, sessions):
    auth = require_login(sessions)
    entries = store.list_entries(auth.owner_id, args.status)
    if not entries:
        print("Your list is empty.")
        return
    display_entries(entries, store, args.format)


def cmd_review(args, config, store, sessions):
    review = store.append_review(args.book_id, current_owner(sessions), args.rating, args.comment)
    if review is None:
        print("Review not saved: choose a rating from 1 to 5 and write a comment.")
        return
    print("Review added!")


def cmd_reviews(args, config, store, sessions):
    owner_id = current_owner(sessions)
    entry = store.get_list_entry(args.book_id, owner_id) if owner_id else None
    if entry is not None:
        reviews = reviews_for_display(entry, store, dedupe=args.dedupe)
    else:
        reviews = merge_reviews([], store.get_reviews_for(args.book_id))
    display_reviews(reviews)


def cmd_links(args, config, store, sessions):
    book = pick_book(search_catalog(args.title, config), args.pick)
    for link in borrow_links(book):
        print(f"{link.platform}: {link.url}")


def cmd_login(args, config, store, sessions):
    password = args.password or getpass.getpass("Password: ")
    auth = BackendGateway(config.API_BASE_URL, retry=retry_policy(config)).authenticate(
        args.username, password
    )
    sessions.save(auth)
    print(f"Logged in as {args.username}.")


def cmd_register(args, config, store, sessions):
    password = args.password or getpass.getpass("Password: ")
    auth = BackendGateway(config.API_BASE_URL, retry=retry_policy(config)).register(
        username=args.username, email=args.email, password=password
    )
    sessions.save(auth)
    print(f"Registered and logged in as {args.username}.")


def cmd_logout(args, config, store, sessions):
    sessions.clear()
    print("Logged out.")


def cmd_profile(args, config, store, sessions):
    auth = require_login(sessions)
    gateway = BackendGateway(config.API_BASE_URL, retry=retry_policy(config))
    if args.picture:
        with open(args.picture, "rb") as f:
            profile = gateway.update_profile(auth, auth.owner_id, file=f)
    else:
        profile = gateway.get_profile(auth, auth.owner_id)

    rows = [
        ["Username", profile.username or ""],
        ["Email", profile.email or ""],
        ["Picture", profile.profile_pic or ""],
    ]
    print(tabulate(rows, tablefmt="plain"))


def cmd_delete_account(args, config, store, sessions):
    auth = require_login(sessions)
    if not args.yes:
        print("Refusing to delete the account without --yes.")
        return
    BackendGateway(config.API_BASE_URL, retry=retry_policy(config)).delete_account(
        auth, auth.owner_id
    )
    sessions.clear()
    print("Account and related data deleted.")


COMMANDS = {
    "search": cmd_search,
    "discover": cmd_discover,
    "add": cmd_add,
    "list": cmd_list,
    "review": cmd_review,
    "reviews": cmd_reviews,
    "links": cmd_links,
    "login": cmd_login,
    "register": cmd_register,
    "logout": cmd_logout,
    "profile": cmd_profile,
    "delete-account": cmd_delete_account,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bookshelf - personal e-book library",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search by title
  %(prog)s search "dune"

  # Random fiction, fetched asynchronously
  %(prog)s discover --limit 6 --async

  # Save the second hit to the reading list
  %(prog)s add "dune" --pick 2 --status reading

  # Review a saved book
  %(prog)s review /works/OL893415W --rating 5 --comment "Loved it"
        """
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    formats = ["table", "json", "compact"]

    search_parser = subparsers.add_parser("search", help="Search the catalog by title")
    search_parser.add_argument("title", help="Title to search for")
    search_parser.add_argument("--format", choices=formats, default="table", help="Output format")
    search_parser.add_argument("--async", dest="use_async", action="store_true", help="Use async client")

    discover_parser = subparsers.add_parser("discover", help="Random books from a subject")
    discover_parser.add_argument("--subject", action="append", help="Subject (repeatable, default: fiction)")
    discover_parser.add_argument("--limit", type=int, help="Works per subject")
    discover_parser.add_argument("--format", choices=formats, default="table", help="Output format")
    discover_parser.add_argument("--async", dest="use_async", action="store_true", help="Use async client")

    add_parser = subparsers.add_parser("add", help="Save a search result to a list")
    add_parser.add_argument("title", help="Title to search for")
    add_parser.add_argument("--status", choices=STATUS_CHOICES, required=True, help="List to add to")
    add_parser.add_argument("--pick", type=int, default=1, help="Result number (default: 1)")

    list_parser = subparsers.add_parser("list", help="Show your saved books")
    list_parser.add_argument("--status", choices=STATUS_CHOICES, help="Only this list")
    list_parser.add_argument("--format", choices=formats, default="table", help="Output format")

    review_parser = subparsers.add_parser("review", help="Review a book")
    review_parser.add_argument("book_id", help="Catalog work key, e.g. /works/OL1W")
    review_parser.add_argument("--rating", type=int, required=True, help="1 to 5")
    review_parser.add_argument("--comment", required=True, help="Review text")

    reviews_parser = subparsers.add_parser("reviews", help="Show reviews for a book")
    reviews_parser.add_argument("book_id", help="Catalog work key")
    reviews_parser.add_argument("--dedupe", action="store_true", help="Hide local copies of synced reviews")

    links_parser = subparsers.add_parser("links", help="Where to borrow or buy a book")
    links_parser.add_argument("title", help="Title to search for")
    links_parser.add_argument("--pick", type=int, default=1, help="Result number (default: 1)")

    login_parser = subparsers.add_parser("login", help="Log in to the backend")
    login_parser.add_argument("username", help="Username or email")
    login_parser.add_argument("--password", help="Password (prompted if omitted)")

    register_parser = subparsers.add_parser("register", help="Create a backend account")
    register_parser.add_argument("username", help="Username")
    register_parser.add_argument("email", help="Email address")
    register_parser.add_argument("--password", help="Password (prompted if omitted)")

    subparsers.add_parser("logout", help="Forget the saved login")

    profile_parser = subparsers.add_parser("profile", help="Show or update your profile")
    profile_parser.add_argument("--picture", help="Upload a new profile picture")

    delete_parser = subparsers.add_parser("delete-account", help="Delete your account")
    delete_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def main(argv=None, storage=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = Config()

    try:
        storage = storage or setup_storage(config)
        store = LocalListStore(storage)
        sessions = SessionStore(storage)
        COMMANDS[args.command](args, config, store, sessions)

    except BookshelfError as e:
        notify_failure(e)
        return 1
    except KeyboardInterrupt:
        logger.info("\n⚠️  Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=True)
        return 1

    return 0


def run():
    """Console script entry point."""
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    sys.exit(main())


if __name__ == "__main__":
    run()
