"""Tests for identifier naming helpers and ``DefaultNamingStrategy``."""

from db_schema_sync.metadata.naming import DefaultNamingStrategy, shorten, snake_case


class TestSnakeCase:
    def test_camel_case(self):
        assert snake_case("BlogPost") == "blog_post"

    def test_acronyms(self):
        assert snake_case("HTTPRequest") == "http_request"

    def test_already_snake(self):
        assert snake_case("blog_post") == "blog_post"


class TestShorten:
    def test_segments(self):
        assert shorten("category_questions_question", separator="_", segment_length=3) == "cat_que_que"

    def test_camel_case_terms(self):
        assert shorten("categoryQuestions__question") == "caQu__ques"


class TestDefaultNamingStrategy:
    """Verify generated names are stable and table-path independent."""

    def test_table_name(self):
        naming = DefaultNamingStrategy()
        assert naming.table_name("BlogPost", None) == "blog_post"
        assert naming.table_name("BlogPost", "posts") == "posts"

    def test_constraint_names_ignore_column_order(self):
        naming = DefaultNamingStrategy()
        assert naming.unique_constraint_name("t", ["a", "b"]) == naming.unique_constraint_name("t", ["b", "a"])

    def test_constraint_names_ignore_schema(self):
        naming = DefaultNamingStrategy()
        assert naming.foreign_key_name("app.t", ["a"]) == naming.foreign_key_name("t", ["a"])

    def test_prefixes_and_lengths(self):
        naming = DefaultNamingStrategy()
        assert naming.primary_key_name("t", ["id"]).startswith("PK_")
        assert len(naming.primary_key_name("t", ["id"])) == 30
        assert naming.index_name("t", ["a"]).startswith("IDX_")
        assert len(naming.index_name("t", ["a"])) == 30

    def test_partial_index_name_differs(self):
        naming = DefaultNamingStrategy()
        assert naming.index_name("t", ["a"]) != naming.index_name("t", ["a"], "a > 0")

    def test_join_names(self):
        naming = DefaultNamingStrategy()
        assert naming.join_column_name("author", "id") == "author_id"
        assert naming.join_table_name("post", "tag", "tags", "posts") == "post_tags_tag"
        assert naming.join_table_column_name("post", "id") == "post_id"
        assert naming.join_table_column_duplication_prefix("node_id", 2) == "node_id_2"
        assert naming.closure_junction_table_name("category") == "category_closure"
