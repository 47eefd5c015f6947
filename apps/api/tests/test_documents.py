"""
Document binding and streaming tests.

- primary documents must be PDF (declared type and file signature)
- size limit answers 413, wrong type 415
- replacing a primary document keeps the previous one as non-current
- download_count grows once per successfully opened stream
"""
import pytest

from apps.theses.models import Thesis, ThesisDocument, ThesisStatus

from .conftest import PDF_BYTES, make_pdf


def document_url(thesis, suffix='document/'):
    return f'/api/v1/theses/{thesis.pk}/{suffix}'


@pytest.mark.django_db
class TestPrimaryDocumentUpload:

    def test_pdf_is_bound(self, student_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student)

        response = upload_pdf(student_client, thesis.pk)

        assert response.status_code == 201
        data = response.json()['data']
        assert data['kind'] == 'primary'
        assert data['content_type'] == 'application/pdf'
        assert data['size_bytes'] == len(PDF_BYTES)
        assert data['is_current'] is True
        assert len(data['sha256']) == 64
        thesis.refresh_from_db()
        assert str(thesis.primary_document_id) == data['id']

    def test_non_pdf_type_is_415(self, student_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student)

        response = upload_pdf(student_client, thesis.pk, make_pdf('notes.txt', b'plain text', 'text/plain'))

        assert response.status_code == 415
        assert response.json()['success'] is False
        assert not ThesisDocument.objects.filter(thesis=thesis).exists()

    def test_pdf_type_without_pdf_content_is_415(self, student_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student)

        response = upload_pdf(student_client, thesis.pk, make_pdf('fake.pdf', b'MZ\x90\x00 not a pdf'))

        assert response.status_code == 415
        thesis.refresh_from_db()
        assert thesis.primary_document_id is None

    def test_oversized_file_is_413(self, settings, student_client, make_thesis, student, upload_pdf):
        settings.THESIS_MAX_DOCUMENT_SIZE = 16
        thesis = make_thesis(student)

        response = upload_pdf(student_client, thesis.pk)

        assert response.status_code == 413
        assert response.json()['code'] == 'payload_too_large'
        assert not ThesisDocument.objects.filter(thesis=thesis).exists()

    def test_missing_file_field_is_422(self, student_client, make_thesis, student):
        thesis = make_thesis(student)
        response = student_client.post(document_url(thesis), {}, format='multipart')
        assert response.status_code == 422

    def test_replacement_keeps_previous_document(self, student_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student)
        first = upload_pdf(student_client, thesis.pk, make_pdf('v1.pdf')).json()['data']
        second = upload_pdf(student_client, thesis.pk, make_pdf('v2.pdf')).json()['data']

        thesis.refresh_from_db()
        assert str(thesis.primary_document_id) == second['id']
        assert ThesisDocument.objects.get(pk=first['id']).is_current is False
        assert ThesisDocument.objects.filter(thesis=thesis, kind='primary').count() == 2

    def test_creator_cannot_bind_after_submission(self, student_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student, status=ThesisStatus.UNDER_REVIEW)

        response = upload_pdf(student_client, thesis.pk)

        assert response.status_code == 409
        assert response.json()['code'] == 'thesis_locked'

    def test_admin_binds_at_any_status(self, admin_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student, status=ThesisStatus.PUBLISHED, is_public=True)
        assert upload_pdf(admin_client, thesis.pk).status_code == 201

    def test_co_author_cannot_bind(self, classmate_client, make_thesis, student, classmate, upload_pdf):
        thesis = make_thesis(student, co_authors=[classmate])
        assert upload_pdf(classmate_client, thesis.pk).status_code == 403

    def test_anonymous_cannot_bind(self, api_client, make_thesis, student, upload_pdf):
        thesis = make_thesis(student)
        assert upload_pdf(api_client, thesis.pk).status_code == 401


@pytest.mark.django_db
class TestSupplementaryFiles:

    def test_supplementary_types(self, student_client, make_thesis, student):
        thesis = make_thesis(student)

        accepted = student_client.post(
            document_url(thesis, 'supplementary/'),
            {'file': make_pdf('data.txt', b'a,b\n1,2\n', 'text/plain')},
            format='multipart',
        )
        refused = student_client.post(
            document_url(thesis, 'supplementary/'),
            {'file': make_pdf('tool.exe', b'MZ', 'application/x-msdownload')},
            format='multipart',
        )

        assert accepted.status_code == 201
        assert accepted.json()['data']['kind'] == 'supplementary'
        assert refused.status_code == 415

    def test_at_most_five_files(self, student_client, make_thesis, student):
        thesis = make_thesis(student)
        for n in range(5):
            response = student_client.post(
                document_url(thesis, 'supplementary/'),
                {'file': make_pdf(f'appendix{n}.txt', b'appendix', 'text/plain')},
                format='multipart',
            )
            assert response.status_code == 201

        response = student_client.post(
            document_url(thesis, 'supplementary/'),
            {'file': make_pdf('appendix5.txt', b'appendix', 'text/plain')},
            format='multipart',
        )

        assert response.status_code == 409
        assert ThesisDocument.objects.filter(thesis=thesis, kind='supplementary').count() == 5

    def test_supplementary_files_in_detail(self, student_client, make_thesis, student):
        thesis = make_thesis(student)
        student_client.post(
            document_url(thesis, 'supplementary/'),
            {'file': make_pdf('slides.txt', b'slides', 'text/plain')},
            format='multipart',
        )

        detail = student_client.get(f'/api/v1/theses/{thesis.pk}/').json()['data']

        assert [f['original_name'] for f in detail['supplementary_files']] == ['slides.txt']
        assert detail['primary_document'] is None


@pytest.mark.django_db
class TestDownload:

    def _published_with_document(self, make_thesis, student, student_client, upload_pdf):
        thesis = make_thesis(student)
        upload_pdf(student_client, thesis.pk)
        Thesis.objects.filter(pk=thesis.pk).update(status=ThesisStatus.PUBLISHED, is_public=True)
        return Thesis.objects.get(pk=thesis.pk)

    def test_download_streams_pdf_and_counts_once(self, api_client, make_thesis, student, student_client, upload_pdf):
        thesis = self._published_with_document(make_thesis, student, student_client, upload_pdf)

        response = api_client.get(document_url(thesis, 'download/'))

        assert response.status_code == 200
        assert response['Content-Type'] == 'application/pdf'
        assert b''.join(response.streaming_content) == PDF_BYTES
        thesis.refresh_from_db()
        assert thesis.download_count == 1

    def test_missing_object_does_not_count(self, api_client, make_thesis, student, student_client, upload_pdf):
        thesis = self._published_with_document(make_thesis, student, student_client, upload_pdf)
        document = thesis.primary_document
        document.file.storage.delete(document.file.name)

        response = api_client.get(document_url(thesis, 'download/'))

        assert response.status_code == 404
        thesis.refresh_from_db()
        assert thesis.download_count == 0

    def test_no_document_is_404(self, api_client, make_thesis, student):
        thesis = make_thesis(student, status=ThesisStatus.PUBLISHED, is_public=True)

        response = api_client.get(document_url(thesis, 'download/'))

        assert response.status_code == 404
        thesis.refresh_from_db()
        assert thesis.download_count == 0

    def test_invisible_thesis_is_404(self, api_client, classmate_client, make_thesis, student, student_client, upload_pdf):
        thesis = make_thesis(student)
        upload_pdf(student_client, thesis.pk)

        assert api_client.get(document_url(thesis, 'download/')).status_code == 404
        assert classmate_client.get(document_url(thesis, 'download/')).status_code == 404

        response = student_client.get(document_url(thesis, 'download/'))
        assert response.status_code == 200
        b''.join(response.streaming_content)
