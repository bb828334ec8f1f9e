import pytest

from nearby.core.exceptions import ResourceAlreadyExistsError, ResourceNotFoundError
from nearby.models.service import Service, ServiceType
from nearby.services.favorite_service import FavoriteService


def _count(db, service_id):
    db.expire_all()
    return db.get(Service, service_id).favorite_count


def test_favorite_adjusts_counter_by_one(db, make_user, make_service):
    user = make_user()
    service = make_service()
    favorites = FavoriteService()

    favorite = favorites.create(db, user.id, service.id)
    assert _count(db, service.id) == 1
    assert favorite.service.id == service.id

    favorites.remove(db, user.id, favorite.id)
    assert _count(db, service.id) == 0


def test_second_favorite_conflicts_without_double_increment(db, make_user, make_service):
    user = make_user()
    service = make_service()
    favorites = FavoriteService()
    favorites.create(db, user.id, service.id)

    with pytest.raises(ResourceAlreadyExistsError) as exc:
        favorites.create(db, user.id, service.id)

    assert exc.value.status_code == 409
    assert _count(db, service.id) == 1


def test_counter_never_goes_negative(db, make_user, make_service):
    user = make_user()
    service = make_service()
    favorites = FavoriteService()
    favorite = favorites.create(db, user.id, service.id)
    db.get(Service, service.id).favorite_count = 0
    db.commit()

    favorites.remove(db, user.id, favorite.id)

    assert _count(db, service.id) == 0


def test_favorite_unknown_service(db, make_user):
    user = make_user()
    with pytest.raises(ResourceNotFoundError):
        FavoriteService().create(db, user.id, "missing")


def test_favorites_are_private(db, make_user, make_service):
    owner = make_user()
    stranger = make_user(email="stranger@x.com")
    service = make_service()
    favorites = FavoriteService()
    favorite = favorites.create(db, owner.id, service.id)

    with pytest.raises(ResourceNotFoundError):
        favorites.get(db, stranger.id, favorite.id)
    with pytest.raises(ResourceNotFoundError):
        favorites.remove(db, stranger.id, favorite.id)
    assert favorites.get(db, owner.id, favorite.id).service_id == service.id
    assert favorites.is_favorite(db, owner.id, service.id)
    assert not favorites.is_favorite(db, stranger.id, service.id)


def test_list_and_filter_by_service_type(db, make_user, make_service):
    user = make_user()
    cafe_type = ServiceType(name="Cafe", slug="cafe")
    db.add(cafe_type)
    db.commit()
    restaurant = make_service(name="Pho Thin")
    cafe = make_service(name="Cafe Giang", service_type_id=cafe_type.id)
    favorites = FavoriteService()
    favorites.create(db, user.id, restaurant.id)
    favorites.create(db, user.id, cafe.id)

    assert {item.service_id for item in favorites.list_for_user(db, user.id)} == {restaurant.id, cafe.id}
    by_type = favorites.list_by_service_type(db, user.id, cafe_type.id)
    assert [item.service_id for item in by_type] == [cafe.id]
