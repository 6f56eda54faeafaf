import threading
from unittest.mock import MagicMock

import pytest

from nasimg.utils.directory_index import DirectoryIndexer, IndexState


def build(tree, root="/"):
    state = IndexState()
    report = DirectoryIndexer(tree, state).build_index(root)
    return state, report


def test_indexes_only_directories_with_direct_images(make_tree):
    tree = make_tree(
        files={"/a/photo.JPG": b"jpg", "/a/notes.txt": b"txt", "/b/img.png": b"png"},
        dirs=["/c"],
    )

    state, report = build(tree)

    assert set(report.directories) == {"/a", "/b"}
    assert report.failures == ()
    assert report.visited == 4
    state.publish(tree)
    assert set(state.get().directories) == {"/a", "/b"}


def test_nested_images_index_only_their_own_directory(make_tree):
    tree = make_tree(files={"/x/y/z/pic.gif": b"", "/x/readme.md": b""})

    _, report = build(tree)

    assert report.directories == ("/x/y/z",)


def test_directory_with_image_like_name_is_not_an_image(make_tree):
    tree = make_tree(dirs=["/holiday.png/empty"])

    _, report = build(tree)

    assert report.directories == ()
    assert "/holiday.png/empty" in tree.listed


def test_unreadable_subdirectory_does_not_abort_the_walk(make_tree):
    tree = make_tree(
        files={
            "/a/one.jpg": b"",
            "/b/two.jpg": b"",
            "/b/inner/three.jpg": b"",
            "/c/d/four.webp": b"",
        },
        failing={"/b"},
    )

    _, report = build(tree)

    assert set(report.directories) == {"/a", "/c/d"}
    assert [failure.path for failure in report.failures] == ["/b"]
    assert "Permission denied" in report.failures[0].error
    assert "/b/inner" not in tree.listed


def test_root_listing_failure_yields_empty_index(make_tree):
    tree = make_tree(files={"/a/one.jpg": b""}, failing={"/"})

    state, report = build(tree)

    assert report.directories == ()
    assert len(report.failures) == 1
    state.publish(tree)
    assert state.get().directories == ()


def test_walk_from_a_subtree_root(make_tree):
    tree = make_tree(files={"/photos/2023/a.png": b"", "/other/b.png": b""})

    _, report = build(tree, root="/photos")

    assert report.directories == ("/photos/2023",)
    assert "/other" not in tree.listed


def test_very_deep_tree_is_walked_without_recursion(make_tree):
    depth = 2000
    path = "".join(f"/d{i}" for i in range(depth))
    tree = make_tree(files={f"{path}/deep.png": b"", "/top.png": b""})

    _, report = build(tree)

    assert set(report.directories) == {path, "/"}
    assert report.visited == depth + 1


def test_siblings_are_visited_depth_first_in_listing_order(make_tree):
    tree = make_tree(dirs=["/a/x", "/b"])

    build(tree)

    assert tree.listed == ["/", "/a", "/a/x", "/b"]


def test_each_directory_is_listed_once(make_tree):
    tree = make_tree(files={"/a/1.png": b"", "/a/b/2.png": b"", "/c/3.png": b""})

    build(tree)

    assert sorted(tree.listed) == sorted(set(tree.listed))


def test_index_state_before_publication_is_empty():
    state = IndexState()
    state.append("/a")

    snapshot = state.get()

    assert snapshot.directories == ()
    assert snapshot.accessor is None
    assert not state.published


def test_index_state_publish_freezes_the_index():
    state = IndexState()
    accessor = MagicMock()
    state.append("/a")
    state.append("/b")

    snapshot = state.publish(accessor)

    assert snapshot.directories == ("/a", "/b")
    assert state.get() is snapshot
    assert state.get().accessor is accessor
    with pytest.raises(RuntimeError, match="already published"):
        state.append("/c")
    with pytest.raises(RuntimeError, match="already published"):
        state.publish(accessor)
    assert state.get().directories == ("/a", "/b")


def test_index_state_concurrent_appends_are_all_recorded():
    state = IndexState()

    def writer(worker: int):
        for i in range(500):
            state.append(f"/w{worker}/{i}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    directories = state.publish(MagicMock()).directories
    assert len(directories) == 8 * 500
    assert len(set(directories)) == 8 * 500
