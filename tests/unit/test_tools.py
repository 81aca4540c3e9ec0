import asyncio

import pytest

from ragdesk.db.models.documents import DocumentStatus, RagChunk, RagDocument
from ragdesk.services.tools import MAX_TOP_K, ChatTools, clamp_top_k, library_search


@pytest.fixture
def tools(db, factory):
    return ChatTools(factory, db, chat_id="chat-1", user_id="user-1")


def ingest(factory, store_file, file_name, text, chat_id="chat-1"):
    result = asyncio.run(factory.personal_orchestrator("user-1", chat_id).ingest(store_file(file_name, text)))
    assert result.success
    return result.document_id


def test_clamp_top_k():
    assert clamp_top_k(None, 5) == 5
    assert clamp_top_k(0, 5) == 1
    assert clamp_top_k(-3, 5) == 1
    assert clamp_top_k(500, 5) == MAX_TOP_K
    assert clamp_top_k(7, 5) == 7


def test_rag_search_result_shape(tools, factory, store_file):
    document_id = ingest(factory, store_file, "leave.txt", "The annual leave policy grants twenty days.")

    response = asyncio.run(tools.rag_search("annual leave policy"))

    assert response["message"] == "Found 1 relevant section(s) in the uploaded documents."
    result = response["results"][0]
    assert set(result) == {"documentId", "fileName", "text", "pageNumber", "chunkIndex", "score"}
    assert result["documentId"] == document_id
    assert result["fileName"] == "leave.txt"
    assert result["chunkIndex"] == 0


def test_rag_search_clamps_top_k(tools, pinecone_index):
    asyncio.run(tools.rag_search("anything", top_k=1000))
    asyncio.run(tools.rag_search("anything", top_k=0))
    asyncio.run(tools.rag_search("anything"))

    assert [query["top_k"] for query in pinecone_index.queries] == [MAX_TOP_K, 1, 5]


def test_rag_search_with_nothing_uploaded(tools):
    response = asyncio.run(tools.rag_search("anything"))

    assert response == {"message": "No relevant content found in the uploaded documents.", "results": []}


def test_rag_search_failure_degrades_to_empty(tools, pinecone_index):
    pinecone_index.fail_query = True

    response = asyncio.run(tools.rag_search("anything"))

    assert response == {"message": "Failed to search documents.", "results": []}


def test_library_search_tool(db, factory, store_file):
    asyncio.run(factory.library_orchestrator("admin-1").ingest(store_file("code.txt", "Dress code is business casual.")))

    response = asyncio.run(library_search(factory, db, "dress code"))

    assert response["message"] == "Found 1 relevant section(s) from the knowledge library."
    result = response["results"][0]
    assert result["fileName"] == "code.txt"
    assert {"documentId", "chunkIndex", "pageNumber", "score", "text"} <= set(result)


def test_library_search_tool_failure(db, factory, genai_client):
    genai_client.fail_embed_on_call = 1

    response = asyncio.run(library_search(factory, db, "dress code"))

    assert response == {"message": "Failed to search knowledge library.", "results": []}


def test_empty_library_message(db, factory):
    response = asyncio.run(library_search(factory, db, "dress code", top_k=3))

    assert response["message"] == "No relevant documents found in the knowledge library."


def test_list_chat_documents(tools, factory, store_file):
    assert asyncio.run(tools.list_chat_documents())["message"] == "No documents have been uploaded in this chat yet."

    ingest(factory, store_file, "a.txt", "Alpha.")
    asyncio.run(factory.personal_orchestrator("user-1", "chat-1").ingest(store_file("b.zip", b"PK", mime_type="application/zip")))
    ingest(factory, store_file, "other.txt", "Elsewhere.", chat_id="chat-2")

    response = asyncio.run(tools.list_chat_documents())

    assert response["message"] == "Found 2 document(s) in this chat."
    assert response["summary"] == {"processing": 0, "ready": 1, "failed": 1}
    assert sorted(document["fileName"] for document in response["documents"]) == ["a.txt", "b.zip"]


def test_document_preview_truncates_long_chunks(db, tools):
    db.add(RagDocument(
        id="doc-1", user_id="user-1", chat_id="chat-1", file_name="long.txt",
        status=DocumentStatus.READY.value, chunk_count=4,
    ))
    for index, text in enumerate(["x" * 800, "short", "y" * 500, "z"]):
        db.add(RagChunk(id=f"chunk-{index}", document_id="doc-1", pinecone_id=f"vec-{index}", chunk_index=index, text=text))
    db.commit()

    response = asyncio.run(tools.get_document_preview("doc-1"))

    assert response["message"] == "Retrieved 3 preview section(s)."
    preview = response["preview"]
    assert [item["chunkIndex"] for item in preview] == [0, 1, 2]
    assert preview[0]["text"] == "x" * 500 + "..."
    assert preview[1]["text"] == "short"
    assert preview[2]["text"] == "y" * 500


def test_document_preview_for_unknown_document(tools):
    assert asyncio.run(tools.get_document_preview("missing")) == {
        "message": "No content found for this document.",
        "preview": [],
    }


def test_search_documents_by_name(tools, factory, store_file):
    ingest(factory, store_file, "Budget-2024.txt", "Budget figures.")
    ingest(factory, store_file, "notes.txt", "Notes.")

    found = asyncio.run(tools.search_documents_by_name("budget"))
    missing = asyncio.run(tools.search_documents_by_name("roadmap"))

    assert found["message"] == 'Found 1 document(s) matching "budget".'
    assert found["documents"][0]["fileName"] == "Budget-2024.txt"
    assert missing == {"message": 'No documents found matching "roadmap".', "documents": []}


def test_search_document_chunks(tools, factory, store_file):
    document_id = ingest(factory, store_file, "contract.txt", "The Termination Clause requires ninety days notice.")
    ingest(factory, store_file, "elsewhere.txt", "Another termination clause.", chat_id="chat-2")

    found = asyncio.run(tools.search_document_chunks("termination clause"))
    scoped = asyncio.run(tools.search_document_chunks("termination", document_id="unknown"))

    assert found["message"] == 'Found 1 chunk(s) containing "termination clause".'
    assert found["chunks"][0]["fileName"] == "contract.txt"
    assert found["chunks"][0]["id"]
    assert document_id
    assert scoped == {"message": 'No chunks found containing "termination".', "chunks": []}


def test_tools_never_reach_another_users_documents(db, factory, store_file):
    document_id = ingest(factory, store_file, "secret.txt", "Owner salary is 90000.")
    intruder = ChatTools(factory, db, chat_id="chat-1", user_id="user-2")

    assert asyncio.run(intruder.list_chat_documents())["documents"] == []
    assert asyncio.run(intruder.get_document_preview(document_id))["preview"] == []
    assert asyncio.run(intruder.search_documents_by_name("secret"))["documents"] == []
    assert asyncio.run(intruder.search_document_chunks("salary"))["chunks"] == []
    assert asyncio.run(intruder.rag_search("owner salary"))["results"] == []


def test_preview_is_bound_to_its_chat(db, factory, store_file):
    document_id = ingest(factory, store_file, "notes.txt", "Chat one notes.", chat_id="chat-1")
    other_chat = ChatTools(factory, db, chat_id="chat-2", user_id="user-1")

    assert asyncio.run(other_chat.get_document_preview(document_id)) == {
        "message": "No content found for this document.",
        "preview": [],
    }
