import asyncio

import pytest


async def _count_notes(db):
    async with db.read() as conn:
        async with conn.execute("SELECT COUNT(*) FROM notes") as cursor:
            return (await cursor.fetchone())[0]


@pytest.mark.asyncio
async def test_read_never_sees_rolled_back_rows(db):
    async with db.transaction() as conn:
        await conn.execute("CREATE TABLE notes (body TEXT)")

    inserted = asyncio.Event()
    release = asyncio.Event()

    async def abandoned_write():
        async with db.transaction() as conn:
            await conn.execute("INSERT INTO notes (body) VALUES ('draft')")
            inserted.set()
            await release.wait()
            raise RuntimeError("abandon")

    writer = asyncio.create_task(abandoned_write())
    await inserted.wait()
    reader = asyncio.create_task(_count_notes(db))
    await asyncio.sleep(0.05)
    assert not reader.done()

    release.set()
    with pytest.raises(RuntimeError):
        await writer
    assert await reader == 0


@pytest.mark.asyncio
async def test_read_sees_rows_once_committed(db):
    async with db.transaction() as conn:
        await conn.execute("CREATE TABLE notes (body TEXT)")

    inserted = asyncio.Event()
    release = asyncio.Event()

    async def write():
        async with db.transaction() as conn:
            await conn.execute("INSERT INTO notes (body) VALUES ('kept')")
            inserted.set()
            await release.wait()

    writer = asyncio.create_task(write())
    await inserted.wait()
    reader = asyncio.create_task(_count_notes(db))
    await asyncio.sleep(0.05)
    assert not reader.done()

    release.set()
    await writer
    assert await reader == 1
