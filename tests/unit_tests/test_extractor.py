import unittest
from pathlib import Path

from scholar_harvester.services.scholar.extractor import (
    extract_author_profile,
    extract_author_snippets,
    extract_publications,
    extract_total_results,
    has_next_page,
    next_author_page_url,
)
from scholar_harvester.services.scholar.models import PublicationSource

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures" / "scholar"


def _fixture(name):
    return (FIXTURES / name).read_text(encoding="utf-8")


class TestExtractPublications(unittest.TestCase):
    def setUp(self):
        self.html = _fixture("search_results.html")
        self.pubs = extract_publications(self.html)

    def test_malformed_card_is_dropped(self):
        # 9 cards on the page, one without a title row
        self.assertEqual(len(self.pubs), 8)
        self.assertNotIn("This card lost its title row.", [p.abstract for p in self.pubs])

    def test_full_card(self):
        pub = self.pubs[0]
        self.assertEqual(pub.title, "Attention is all you need")
        self.assertEqual(pub.authors, ["A Vaswani", "N Shazeer", "N Parmar"])
        self.assertEqual(pub.venue, "Advances in neural information processing systems")
        self.assertEqual(pub.year, 2017)
        self.assertEqual(pub.url, "https://proceedings.neurips.cc/paper/7181-attention-is-all-you-need")
        self.assertEqual(pub.pdf_url, "https://arxiv.org/pdf/1706.03762")
        self.assertEqual(pub.citation_count, 120345)
        self.assertEqual(pub.cites_id, "2960712678066186980")
        self.assertEqual(pub.cluster_id, "2960712678066186980")
        self.assertEqual(pub.versions_count, 54)
        self.assertTrue(pub.abstract.startswith("The dominant sequence transduction models"))
        self.assertEqual(pub.source, PublicationSource.PUBLICATION_SEARCH)
        self.assertEqual(pub.provider, "scholar")

    def test_links_are_absolute(self):
        pub = self.pubs[0]
        self.assertTrue(pub.cited_by_url.startswith("https://scholar.google.com/scholar?cites=2960712678066186980"))
        self.assertTrue(pub.related_url.startswith("https://scholar.google.com/scholar?q=related:5Gohgn6QFikJ"))
        self.assertTrue(pub.versions_url.startswith("https://scholar.google.com/scholar?cluster=2960712678066186980"))

    def test_cluster_falls_back_to_cites_id(self):
        pub = self.pubs[1]
        self.assertEqual(pub.title, "Deep residual learning for image recognition")
        self.assertIsNone(pub.versions_count)
        self.assertEqual(pub.cluster_id, "9281510746729853742")

    def test_citation_marker_is_stripped_from_title(self):
        pub = self.pubs[2]
        self.assertEqual(pub.title, "Pattern recognition and machine learning")
        self.assertIsNone(pub.url)
        self.assertEqual(pub.year, 2006)
        self.assertIsNone(pub.venue)
        self.assertEqual(pub.authors, ["CM Bishop", "NM Nasrabadi"])

    def test_implausible_year_is_dropped(self):
        pub = self.pubs[3]
        self.assertEqual(pub.title, "A paper from the future")
        self.assertIsNone(pub.year)
        self.assertEqual(pub.venue, "Journal of Tomorrow")

    def test_arxiv_identifier_is_not_a_year(self):
        pub = self.pubs[4]
        self.assertEqual(pub.year, 2018)
        self.assertEqual(pub.venue, "arXiv preprint arXiv:1810.04805")
        self.assertEqual(pub.versions_count, 23)

    def test_host_only_byline_has_no_venue(self):
        pub = self.pubs[7]
        self.assertEqual(pub.title, "Generative adversarial nets")
        self.assertEqual(pub.authors, ["I Goodfellow", "J Pouget-Abadie"])
        self.assertIsNone(pub.venue)
        self.assertIsNone(pub.year)
        self.assertIsNone(pub.citation_count)

    def test_source_tag_is_passed_through(self):
        pubs = extract_publications(self.html, PublicationSource.CITATION)
        self.assertTrue(all(p.source == PublicationSource.CITATION for p in pubs))

    def test_extraction_is_idempotent(self):
        again = extract_publications(self.html)
        self.assertEqual([p.to_dict() for p in again], [p.to_dict() for p in self.pubs])

    def test_empty_and_foreign_pages_yield_nothing(self):
        self.assertEqual(extract_publications(""), [])
        self.assertEqual(extract_publications(None), [])
        self.assertEqual(extract_publications(_fixture("unusual_traffic.html")), [])


class TestResultPageSignals(unittest.TestCase):
    def test_total_results(self):
        self.assertEqual(extract_total_results(_fixture("search_results.html")), 1230)

    def test_total_results_without_about_prefix(self):
        html = '<div id="gs_ab_md"><div class="gs_ab_mdw">7 results (<b>0.02</b> sec)</div></div>'
        self.assertEqual(extract_total_results(html), 7)

    def test_total_results_missing(self):
        self.assertIsNone(extract_total_results("<html><body></body></html>"))

    def test_next_page_link(self):
        self.assertTrue(has_next_page(_fixture("search_results.html")))

    def test_last_page_has_no_next_link(self):
        html = (
            '<div id="gs_n"><table><tr>'
            '<td><a href="/scholar?start=0&q=x"><span class="gs_ico gs_ico_nav_previous"></span></a></td>'
            '<td><span class="gs_ico gs_ico_nav_current"></span><b>2</b></td>'
            '<td align="left"><span class="gs_ico gs_ico_nav_next"></span></td>'
            "</tr></table></div>"
        )
        self.assertIs(has_next_page(html), False)

    def test_no_navigation_block(self):
        self.assertIsNone(has_next_page("<html><body><div class='gs_r gs_or gs_scl'></div></body></html>"))


class TestExtractAuthorSnippets(unittest.TestCase):
    def setUp(self):
        self.html = _fixture("author_search.html")

    def test_cards(self):
        authors = extract_author_snippets(self.html)
        self.assertEqual(len(authors), 2)

        hinton = authors[0]
        self.assertEqual(hinton.scholar_id, "JicYPdAAAAAJ")
        self.assertEqual(hinton.name, "Geoffrey Hinton")
        self.assertEqual(hinton.affiliation, "Emeritus Prof. Computer Science, University of Toronto")
        self.assertEqual(hinton.email_domain, "cs.toronto.edu")
        self.assertEqual(hinton.citation_count, 912345)
        self.assertEqual(hinton.interests, ["machine learning", "psychology"])
        self.assertTrue(hinton.image_url.startswith("https://scholar.googleusercontent.com/citations?view_op=small_photo"))
        self.assertEqual(hinton.url, "https://scholar.google.com/citations?user=JicYPdAAAAAJ&hl=en")

        lab = authors[1]
        self.assertEqual(lab.scholar_id, "q0aJl5cAAAAJ")
        self.assertEqual(lab.citation_count, 1204)
        self.assertIsNone(lab.email_domain)
        self.assertIsNone(lab.image_url)
        self.assertEqual(lab.interests, [])

    def test_next_page_token(self):
        self.assertEqual(
            next_author_page_url(self.html),
            "https://scholar.google.com/citations?view_op=search_authors&hl=en&mauthors=hinton"
            "&after_author=qD8JAHrc__8J&astart=10",
        )

    def test_disabled_next_button(self):
        html = '<button class="gs_btnPR" disabled="" onclick="window.location=\'/citations?x\'"></button>'
        self.assertIsNone(next_author_page_url(html))


class TestExtractAuthorProfile(unittest.TestCase):
    def setUp(self):
        self.html = _fixture("author_profile.html")
        self.profile = extract_author_profile(self.html, "JicYPdAAAAAJ")

    def test_header(self):
        p = self.profile
        self.assertEqual(p.scholar_id, "JicYPdAAAAAJ")
        self.assertEqual(p.name, "Geoffrey Hinton")
        self.assertEqual(p.affiliation, "Emeritus Prof. Computer Science, University of Toronto")
        self.assertEqual(p.email_domain, "cs.toronto.edu")
        self.assertEqual(p.homepage, "http://www.cs.toronto.edu/~hinton")
        self.assertEqual(p.interests, ["machine learning", "psychology", "artificial intelligence"])
        self.assertEqual(p.image_url, "https://scholar.google.com/citations/images/avatar_scholar_128.png")

    def test_metrics_by_column_position(self):
        p = self.profile
        self.assertEqual(p.citation_count, 912345)
        self.assertEqual(p.citations_5y, 654321)
        self.assertEqual(p.h_index, 186)
        self.assertEqual(p.h_index_5y, 140)
        self.assertEqual(p.i10_index, 488)
        self.assertEqual(p.i10_index_5y, 390)

    def test_publications(self):
        pubs = self.profile.publications
        self.assertEqual(len(pubs), 3)

        first = pubs[0]
        self.assertEqual(first.title, "Imagenet classification with deep convolutional neural networks")
        self.assertEqual(first.authors, ["A Krizhevsky", "I Sutskever", "GE Hinton"])
        self.assertEqual(first.venue, "Advances in neural information processing systems 25")
        self.assertEqual(first.year, 2012)
        self.assertEqual(first.citation_count, 150123)
        self.assertEqual(first.cites_id, "2071317309766942398")
        self.assertEqual(first.source, PublicationSource.AUTHOR_PROFILE)
        self.assertTrue(first.url.startswith("https://scholar.google.com/citations?view_op=view_citation"))

        self.assertEqual(pubs[1].venue, "nature 521 (7553), 436-444")

        last = pubs[2]
        self.assertEqual(last.title, "Learning representations by back-propagating errors")
        self.assertEqual(last.year, 1986)
        self.assertIsNone(last.citation_count)

    def test_coauthors_are_back_references(self):
        coauthors = self.profile.coauthors
        self.assertEqual([c.scholar_id for c in coauthors], ["kukA0LcAAAAJ", "WLN3QrAAAAAJ"])
        self.assertEqual(coauthors[0].name, "Yoshua Bengio")
        self.assertEqual(coauthors[0].affiliation, "Professor of computer science, University of Montreal")

    def test_citations_by_year(self):
        points = [(c.year, c.citations) for c in self.profile.citations_by_year]
        self.assertEqual(points, [(2021, 80123), (2022, 95456), (2023, 110789)])

    def test_page_without_profile_header(self):
        self.assertIsNone(extract_author_profile(_fixture("search_results.html"), "JicYPdAAAAAJ"))
        self.assertIsNone(extract_author_profile("", "JicYPdAAAAAJ"))

    def test_profile_extraction_is_idempotent(self):
        again = extract_author_profile(self.html, "JicYPdAAAAAJ")
        self.assertEqual(again.to_dict(), self.profile.to_dict())


if __name__ == "__main__":
    unittest.main()
